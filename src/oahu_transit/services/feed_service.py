"""Process-wide wiring of the feed store, planner and collaborators.

The core classes take their dependencies explicitly; this module is the one
place that builds them lazily for the MCP tools.
"""

import logging
from pathlib import Path

from oahu_transit.data.config import TransitConfig, get_config
from oahu_transit.data.feed_store import FeedStore
from oahu_transit.errors import FeedError
from oahu_transit.services.directions import (
    DirectionsChain,
    MapboxDirections,
    StraightLineDirections,
)
from oahu_transit.services.geocoding import GeocoderChain, MapboxGeocoder, StopNameGeocoder
from oahu_transit.services.realtime_service import get_live_feed
from oahu_transit.services.trip_planner import TripPlanner

logger = logging.getLogger(__name__)

_config: TransitConfig | None = None
_store: FeedStore | None = None
_planner: TripPlanner | None = None


def _get_config() -> TransitConfig:
    global _config
    if _config is None:
        _config = get_config()
    return _config


def get_feed_store() -> FeedStore:
    """Get or create the feed store singleton."""
    global _store
    if _store is None:
        config = _get_config()
        _store = FeedStore(config=config, cache_path=Path(config.snapshot_path))
    return _store


def get_trip_planner() -> TripPlanner:
    """Get or create the trip planner singleton."""
    global _planner
    if _planner is None:
        config = _get_config()
        store = get_feed_store()
        geocoder = GeocoderChain(
            [MapboxGeocoder(config), StopNameGeocoder(store.current_snapshot)],
            timeout=config.collaborator_timeout_seconds,
        )
        directions = DirectionsChain(
            [MapboxDirections(config), StraightLineDirections()],
            timeout=config.collaborator_timeout_seconds,
        )
        _planner = TripPlanner(
            store,
            geocoder=geocoder,
            live_feed=get_live_feed(),
            directions=directions,
            config=config,
        )
    return _planner


async def ensure_feed_loaded() -> FeedStore:
    """Make sure some snapshot is being served.

    Cold start tries the on-disk cache first and only then ingests. Ingestion
    failures are logged; callers proceed without feed data (the planner then
    falls back to corridor estimates). A loaded but stale snapshot is served
    as-is while a background refresh runs.
    """
    store = get_feed_store()
    if store.state is None and not await store.load_cached():
        try:
            await store.ingest()
        except FeedError as e:
            logger.warning(f"Initial feed ingestion failed: {e}")
        return store

    await store.refresh()
    return store


def reset_service() -> None:
    """Drop all singletons and re-read configuration. Useful for testing."""
    global _config, _store, _planner
    _config = None
    _store = None
    _planner = None
    if hasattr(get_config, "cache_clear"):
        get_config.cache_clear()
