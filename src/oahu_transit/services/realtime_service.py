"""Live arrivals and vehicle positions from TheBus GTFS-RT feeds.

Feeds are cached for the polling TTL and refetched at most once per expiry
no matter how many requests are waiting on them.
"""

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from typing import Protocol

from oahu_transit.data.cache import FeedCache
from oahu_transit.data.config import TransitConfig, get_config
from oahu_transit.data.gtfsrt_client import GTFSRTClient
from oahu_transit.errors import RealtimeUnavailableError
from oahu_transit.models.realtime import (
    ArrivalsFeed,
    RealtimeArrival,
    VehiclePosition,
    VehiclesFeed,
)

logger = logging.getLogger(__name__)


class LiveTransitFeed(Protocol):
    """Source of live arrival predictions."""

    async def arrivals(self, stop_id: str) -> list[RealtimeArrival]: ...


class GTFSRTLiveFeed:
    """LiveTransitFeed backed by the GTFS-RT trip updates and vehicle positions feeds."""

    def __init__(self, config: TransitConfig | None = None):
        self._config = config or get_config()
        self._arrivals_cache: FeedCache[ArrivalsFeed] = FeedCache(
            ttl=self._config.cache_ttl_seconds
        )
        self._vehicles_cache: FeedCache[VehiclesFeed] = FeedCache(
            ttl=self._config.cache_ttl_seconds
        )

    @property
    def is_available(self) -> bool:
        return self._config.trip_updates_url is not None

    async def arrivals(self, stop_id: str, within_minutes: int = 60) -> list[RealtimeArrival]:
        """Predicted arrivals at one stop in the next ``within_minutes``, soonest first.

        Raises:
            RealtimeUnavailableError: If the live feed is configured but unreachable.
        """
        if not self.is_available:
            return []

        feed = await self._get_arrivals_feed()
        if feed is None:
            raise RealtimeUnavailableError("Trip updates feed unavailable")

        now = datetime.now(UTC)
        horizon = now + timedelta(minutes=within_minutes)
        matching = [
            a for a in feed.arrivals
            if a.stop_id == stop_id and now - timedelta(minutes=1) <= a.predicted_arrival <= horizon
        ]
        if matching and self._config.vehicle_positions_url:
            matching = await self._with_occupancy(matching)
        matching.sort(key=lambda a: (a.predicted_arrival, a.vehicle_id or ""))
        return matching

    async def arrivals_for_stops(self, stop_ids: list[str]) -> dict[str, list[RealtimeArrival]]:
        """Arrivals for several stops, fetched concurrently over one cached feed."""
        results = await asyncio.gather(*(self.arrivals(stop_id) for stop_id in stop_ids))
        return dict(zip(stop_ids, results))

    async def vehicles(self, route_id: str | None = None) -> list[VehiclePosition]:
        """Current vehicle positions, optionally for one route.

        Raises:
            RealtimeUnavailableError: If the feed is configured but unreachable.
        """
        if not self._config.vehicle_positions_url:
            return []
        feed = await self._get_vehicles_feed()
        if feed is None:
            raise RealtimeUnavailableError("Vehicle positions feed unavailable")
        if route_id is None:
            return list(feed.vehicles)
        return [v for v in feed.vehicles if v.route_id == route_id]

    async def _with_occupancy(self, arrivals: list[RealtimeArrival]) -> list[RealtimeArrival]:
        feed = await self._get_vehicles_feed()
        if feed is None:
            return arrivals

        by_trip = {v.trip_id: v for v in feed.vehicles if v.trip_id}
        by_vehicle = {v.vehicle_id: v for v in feed.vehicles if v.vehicle_id}
        enriched: list[RealtimeArrival] = []
        for arrival in arrivals:
            vehicle = by_trip.get(arrival.trip_id) or by_vehicle.get(arrival.vehicle_id)
            if vehicle is None:
                enriched.append(arrival)
                continue
            enriched.append(
                arrival.model_copy(
                    update={
                        "vehicle_id": arrival.vehicle_id or vehicle.vehicle_id,
                        "occupancy_status": arrival.occupancy_status or vehicle.occupancy_status,
                    }
                )
            )
        return enriched

    async def _get_arrivals_feed(self, force_refresh: bool = False) -> ArrivalsFeed | None:
        try:
            return await self._arrivals_cache.get_or_fetch(self._fetch_arrivals, force_refresh)
        except Exception as e:
            logger.warning(f"Failed to fetch trip updates: {e}")
            return None

    async def _get_vehicles_feed(self, force_refresh: bool = False) -> VehiclesFeed | None:
        try:
            return await self._vehicles_cache.get_or_fetch(self._fetch_vehicles, force_refresh)
        except Exception as e:
            logger.warning(f"Failed to fetch vehicle positions: {e}")
            return None

    async def _fetch_arrivals(self) -> ArrivalsFeed:
        async with GTFSRTClient(self._config) as client:
            data = await client.fetch_arrivals()
        logger.debug(f"Fetched {len(data.arrivals)} arrival predictions")
        return data

    async def _fetch_vehicles(self) -> VehiclesFeed:
        async with GTFSRTClient(self._config) as client:
            data = await client.fetch_vehicles()
        logger.debug(f"Fetched {len(data.vehicles)} vehicle positions")
        return data

    def clear_caches(self) -> None:
        self._arrivals_cache.clear()
        self._vehicles_cache.clear()


_live_feed: GTFSRTLiveFeed | None = None


def get_live_feed() -> GTFSRTLiveFeed:
    """Get or create the live feed singleton."""
    global _live_feed
    if _live_feed is None:
        _live_feed = GTFSRTLiveFeed(get_config())
    return _live_feed


def reset_service() -> None:
    """Drop the live feed singleton and re-read configuration. Useful for testing."""
    global _live_feed
    _live_feed = None
    if hasattr(get_config, "cache_clear"):
        get_config.cache_clear()
