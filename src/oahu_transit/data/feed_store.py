"""Holder of the currently served snapshot and its proximity index.

Readers take one ``FeedState`` reference and use it for a whole request.
Ingestion builds a complete replacement off to the side and publishes it
with a single attribute assignment, so a reader never observes a snapshot
from one ingestion paired with an index from another.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

from oahu_transit.data.config import TransitConfig, get_config
from oahu_transit.data.feed_ingestor import FeedIngestor, IngestResult
from oahu_transit.data.feed_parser import IngestDiagnostics
from oahu_transit.data.geo_index import GeoIndex
from oahu_transit.data.snapshot_cache import load_snapshot, save_snapshot
from oahu_transit.errors import FeedError
from oahu_transit.models.gtfs import FeedSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeedState:
    snapshot: FeedSnapshot
    geo_index: GeoIndex


class FeedStore:
    """Owns the current FeedState and coordinates ingestion.

    At most one ingestion runs at a time. Concurrent ``ingest`` calls join
    the in-flight one, and a caller that is cancelled while waiting does not
    cancel it for everyone else.
    """

    def __init__(
        self,
        ingestor: FeedIngestor | None = None,
        config: TransitConfig | None = None,
        cache_path: Path | None = None,
    ):
        self._config = config or get_config()
        self._ingestor = ingestor or FeedIngestor(self._config)
        self._cache_path = cache_path
        self._state: FeedState | None = None
        self._inflight: asyncio.Task[IngestResult] | None = None
        self.last_error: Exception | None = None
        self.last_diagnostics: IngestDiagnostics | None = None

    @property
    def state(self) -> FeedState | None:
        return self._state

    def has_data(self) -> bool:
        state = self._state
        return state is not None and not state.snapshot.is_empty

    def current_snapshot(self) -> FeedSnapshot | None:
        state = self._state
        return state.snapshot if state else None

    def last_ingested_at(self) -> datetime | None:
        state = self._state
        return state.snapshot.ingested_at if state else None

    @property
    def max_age(self) -> timedelta:
        return timedelta(hours=self._config.snapshot_max_age_hours)

    def is_stale(self, now: datetime | None = None) -> bool:
        ingested_at = self.last_ingested_at()
        if ingested_at is None:
            return True
        if ingested_at.tzinfo is None:
            ingested_at = ingested_at.replace(tzinfo=UTC)
        return (now or datetime.now(UTC)) - ingested_at > self.max_age

    @property
    def ingest_in_progress(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def install(self, snapshot: FeedSnapshot) -> FeedState:
        """Build the index for a snapshot and publish both together."""
        geo_index = GeoIndex(
            snapshot.stops,
            cell_degrees=self._config.grid_cell_degrees,
            exclude_zero_coordinates=self._config.exclude_zero_coordinates,
        )
        state = FeedState(snapshot=snapshot, geo_index=geo_index)
        self._state = state
        return state

    async def ingest(self, source: str | Path | None = None) -> IngestResult:
        """Run (or join) an ingestion and wait for it.

        On failure the previously served state is kept and the error is
        re-raised to every waiting caller.

        Raises:
            FetchError: If the feed cannot be retrieved.
            ParseError: If the feed is malformed.
        """
        task = self._start_ingest(source)
        return await asyncio.shield(task)

    async def refresh(
        self, source: str | Path | None = None, force: bool = False
    ) -> FeedSnapshot | None:
        """Return the current snapshot now, re-ingesting in the background if stale."""
        if force or self.is_stale():
            self._start_ingest(source)
        return self.current_snapshot()

    async def load_cached(self, path: Path | None = None) -> bool:
        """Install the on-disk snapshot cache if it is present and fresh.

        Returns:
            True if a cached snapshot was installed.
        """
        path = path or self._cache_path
        if path is None:
            return False
        try:
            snapshot = await asyncio.to_thread(load_snapshot, path, self.max_age)
        except FeedError as e:
            logger.warning(f"Ignoring snapshot cache: {e}")
            return False
        if snapshot is None:
            return False
        current = self.last_ingested_at()
        if current is not None and current >= snapshot.ingested_at:
            return False
        self.install(snapshot)
        logger.info(f"Loaded snapshot cache from {path} ({len(snapshot.stops):,} stops)")
        return True

    async def wait_idle(self) -> None:
        """Wait for any in-flight ingestion to settle. Errors are not raised."""
        task = self._inflight
        if task is not None:
            await asyncio.wait({task})

    def _start_ingest(self, source: str | Path | None) -> asyncio.Task[IngestResult]:
        # check-and-create never awaits, so it is atomic on the event loop
        task = self._inflight
        if task is None or task.done():
            task = asyncio.create_task(self._run_ingest(source))
            task.add_done_callback(self._on_ingest_done)
            self._inflight = task
        return task

    async def _run_ingest(self, source: str | Path | None) -> IngestResult:
        started = datetime.now(UTC)
        result = await self._ingestor.ingest(source)

        previous = self.current_snapshot()
        self.install(result.snapshot)
        self.last_error = None
        self.last_diagnostics = result.diagnostics
        if previous is not None and previous.same_content(result.snapshot):
            logger.info("Feed content unchanged since last ingestion")

        if self._cache_path is not None:
            try:
                await asyncio.to_thread(save_snapshot, result.snapshot, self._cache_path)
            except OSError as e:
                logger.warning(f"Failed to write snapshot cache: {e}")

        elapsed = (datetime.now(UTC) - started).total_seconds()
        logger.info(f"Snapshot swapped in after {elapsed:.1f}s")
        return result

    def _on_ingest_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.last_error = error
            logger.warning(f"Feed ingestion failed, keeping previous snapshot: {error}")
