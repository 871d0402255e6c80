"""On-disk JSON cache of a processed snapshot, for fast cold starts.

Document layout::

    {
      "stops": [{"stop_id", "stop_name", "stop_lat", "stop_lon"}, ...],
      "routes": [{"route_id", "route_short_name", "route_long_name", "route_type"}, ...],
      "stopRoutes": {"<stop_id>": ["<route_id>", ...]},
      "timestamp": "<ISO-8601>",
      "feedVersion": "...",
      "sourceHash": "..."
    }
"""

import logging
import os
from datetime import UTC, datetime, timedelta
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from oahu_transit.errors import ParseError
from oahu_transit.models.gtfs import FeedSnapshot, Route, Stop, build_snapshot

logger = logging.getLogger(__name__)


class CachedStop(BaseModel):
    stop_id: str
    stop_name: str
    stop_lat: float
    stop_lon: float


class CachedRoute(BaseModel):
    route_id: str
    route_short_name: str | None = None
    route_long_name: str | None = None
    route_type: int = 3


class SnapshotDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    stops: list[CachedStop]
    routes: list[CachedRoute]
    stop_routes: dict[str, list[str]] = Field(alias="stopRoutes")
    timestamp: datetime
    feed_version: str | None = Field(default=None, alias="feedVersion")
    source_hash: str | None = Field(default=None, alias="sourceHash")

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # older documents were written without an offset
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @classmethod
    def from_snapshot(cls, snapshot: FeedSnapshot) -> "SnapshotDocument":
        return cls(
            stops=[
                CachedStop(
                    stop_id=s.stop_id,
                    stop_name=s.stop_name,
                    stop_lat=s.stop_lat,
                    stop_lon=s.stop_lon,
                )
                for s in snapshot.stops
            ],
            routes=[
                CachedRoute(
                    route_id=r.route_id,
                    route_short_name=r.route_short_name,
                    route_long_name=r.route_long_name,
                    route_type=r.route_type,
                )
                for r in snapshot.routes
            ],
            stop_routes={k: list(v) for k, v in snapshot.stop_routes.items()},
            timestamp=snapshot.ingested_at,
            feed_version=snapshot.feed_version,
            source_hash=snapshot.source_hash,
        )

    def to_snapshot(self) -> FeedSnapshot:
        snapshot, dropped = build_snapshot(
            (Stop(**s.model_dump()) for s in self.stops),
            (Route(**r.model_dump()) for r in self.routes),
            self.stop_routes,
            ingested_at=self.timestamp,
            feed_version=self.feed_version,
            source_hash=self.source_hash,
        )
        if dropped:
            logger.warning(f"Snapshot cache held {dropped:,} dangling references, dropped")
        return snapshot


def save_snapshot(snapshot: FeedSnapshot, path: Path) -> None:
    """Write the snapshot cache document, replacing any previous one atomically."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_suffix(path.suffix + ".tmp")
    document = SnapshotDocument.from_snapshot(snapshot)
    try:
        temp_path.write_text(document.model_dump_json(by_alias=True), encoding="utf-8")
        os.replace(temp_path, path)
    except OSError:
        temp_path.unlink(missing_ok=True)
        raise
    logger.info(f"Snapshot cache written: {path}")


def load_snapshot(path: Path, max_age: timedelta | None = None) -> FeedSnapshot | None:
    """Read a snapshot cache document.

    Args:
        path: Cache document location.
        max_age: Ignore documents older than this.

    Returns:
        The snapshot, or None if the document is absent or too old.

    Raises:
        ParseError: If the document exists but cannot be decoded.
    """
    path = Path(path)
    if not path.is_file():
        logger.debug(f"No snapshot cache at {path}")
        return None

    try:
        document = SnapshotDocument.model_validate_json(path.read_bytes())
    except ValidationError as e:
        raise ParseError(f"Snapshot cache {path} is invalid: {e.error_count()} errors") from e

    if max_age is not None and datetime.now(UTC) - document.timestamp > max_age:
        logger.info(f"Snapshot cache {path} is older than {max_age}, ignoring")
        return None

    return document.to_snapshot()
