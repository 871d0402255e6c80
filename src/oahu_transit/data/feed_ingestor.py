"""Static feed ingestion: source bytes in, FeedSnapshot out."""

import asyncio
import hashlib
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

import httpx

from oahu_transit.data.config import TransitConfig, get_config
from oahu_transit.data.feed_parser import TABLES, FeedArchive, FeedParser, IngestDiagnostics
from oahu_transit.errors import FetchError, PartialDataError
from oahu_transit.models.gtfs import FeedSnapshot, build_snapshot

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    snapshot: FeedSnapshot
    diagnostics: IngestDiagnostics
    warnings: list[PartialDataError] = field(default_factory=list)


def is_url(source: str | Path) -> bool:
    return isinstance(source, str) and source.startswith(("http://", "https://"))


class FeedIngestor:
    """Fetches and parses a static feed into a new snapshot.

    Never touches the currently served snapshot; FeedStore decides whether
    to swap the result in.
    """

    def __init__(self, config: TransitConfig | None = None):
        self._config = config or get_config()

    async def ingest(self, source: str | Path | None = None) -> IngestResult:
        """Ingest a feed from a URL, a ZIP file, or a directory of tables.

        Args:
            source: Feed location. Defaults to the configured feed URL.

        Returns:
            IngestResult with the new snapshot and its diagnostics.

        Raises:
            FetchError: If the source cannot be retrieved.
            ParseError: If a required table is missing, malformed or empty.
        """
        source = source if source is not None else self._config.feed_url

        if is_url(source):
            payload = await self._fetch(str(source))
            source_hash = hashlib.sha256(payload).hexdigest()
            return await asyncio.to_thread(self._build_from_bytes, payload, source_hash)

        path = Path(source)
        if not path.exists():
            raise FetchError(f"Feed path not found: {path}")
        return await asyncio.to_thread(self._build_from_path, path)

    async def _fetch(self, url: str) -> bytes:
        logger.info(f"Downloading feed from {url}")
        try:
            async with httpx.AsyncClient(
                timeout=self._config.feed_timeout_seconds, follow_redirects=True
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise FetchError(f"Feed download failed with HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise FetchError(f"Feed download failed: {e}") from e
        logger.info(f"Downloaded {len(response.content):,} bytes")
        return response.content

    def _build_from_bytes(self, payload: bytes, source_hash: str) -> IngestResult:
        with FeedArchive.from_bytes(payload) as archive:
            return self._build(archive, source_hash)

    def _build_from_path(self, path: Path) -> IngestResult:
        source_hash = _hash_path(path)
        with FeedArchive.open(path) as archive:
            return self._build(archive, source_hash)

    def _build(self, archive: FeedArchive, source_hash: str) -> IngestResult:
        parser = FeedParser(archive)
        parser.check_required_tables()

        stops = parser.parse_stops()
        routes = parser.parse_routes()

        # pass 1: trip -> route
        trip_to_route = {trip.trip_id: trip.route_id for trip in parser.parse_trips()}

        # pass 2: fold stop_times through it
        stop_routes: dict[str, set[str]] = {}
        orphans = 0
        for stop_time in parser.iter_stop_times():
            route_id = trip_to_route.get(stop_time.trip_id)
            if route_id is None:
                orphans += 1
                continue
            stop_routes.setdefault(stop_time.stop_id, set()).add(route_id)

        feed_version = parser.parse_feed_version()

        snapshot, dropped = build_snapshot(
            stops,
            routes,
            stop_routes,
            ingested_at=datetime.now(UTC),
            feed_version=feed_version,
            source_hash=source_hash,
        )

        diagnostics = parser.diagnostics
        diagnostics.dangling_references = dropped
        diagnostics.orphan_stop_times = orphans

        warnings: list[PartialDataError] = []
        if diagnostics.missing_optional_tables:
            warning = PartialDataError(
                f"Optional tables missing: {', '.join(diagnostics.missing_optional_tables)}"
            )
            logger.warning(f"Partial feed data: {warning}")
            warnings.append(warning)
        if diagnostics.zero_coordinate_stops:
            logger.warning(
                f"{len(diagnostics.zero_coordinate_stops):,} stops have no usable coordinates"
            )
        if dropped or orphans:
            logger.warning(
                f"Dropped {dropped:,} dangling stop/route references "
                f"and {orphans:,} stop_times with unknown trips"
            )

        logger.info(
            f"Feed ingestion complete: {len(snapshot.stops):,} stops, "
            f"{len(snapshot.routes):,} routes, {len(snapshot.stop_routes):,} served stops"
        )
        return IngestResult(snapshot=snapshot, diagnostics=diagnostics, warnings=warnings)


def _hash_path(path: Path) -> str:
    digest = hashlib.sha256()
    if path.is_dir():
        for definition in sorted(TABLES.values(), key=lambda d: d.filename):
            table = path / definition.filename
            if table.is_file():
                digest.update(definition.filename.encode())
                digest.update(table.read_bytes())
    else:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(1 << 20), b""):
                digest.update(chunk)
    return digest.hexdigest()
