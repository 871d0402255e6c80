"""Walking, cycling and driving alternatives from directions providers."""

import asyncio
import logging
from collections.abc import Sequence
from enum import Enum
from typing import Protocol

import httpx

from oahu_transit.data.config import TransitConfig
from oahu_transit.data.geo_index import haversine_distance
from oahu_transit.models.gtfs import Coordinate
from oahu_transit.models.responses import DirectionsResult
from oahu_transit.services.itineraries import WALK_SPEED_METERS_PER_MINUTE

logger = logging.getLogger(__name__)

MAPBOX_DIRECTIONS_URL = "https://api.mapbox.com/directions/v5/mapbox/{profile}/{coordinates}"


class DirectionsMode(str, Enum):
    WALKING = "walking"
    CYCLING = "cycling"
    DRIVING = "driving"


# Straight-line fallback speeds in meters/minute and road detour factor
ESTIMATE_SPEEDS: dict[DirectionsMode, float] = {
    DirectionsMode.WALKING: WALK_SPEED_METERS_PER_MINUTE,
    DirectionsMode.CYCLING: 250.0,  # 15 km/h
    DirectionsMode.DRIVING: 500.0,  # 30 km/h in town traffic
}
DETOUR_FACTOR = 1.3


class DirectionsProvider(Protocol):
    name: str

    async def route(
        self, origin: Coordinate, destination: Coordinate, mode: DirectionsMode
    ) -> DirectionsResult | None: ...


class MapboxDirections:
    """Mapbox Directions API. Returns None when no access token is configured."""

    name = "mapbox"

    def __init__(self, config: TransitConfig):
        self._token = config.mapbox_access_token
        self._timeout = config.collaborator_timeout_seconds

    async def route(
        self, origin: Coordinate, destination: Coordinate, mode: DirectionsMode
    ) -> DirectionsResult | None:
        """Fetch the best route for one profile.

        Raises:
            httpx.HTTPError: If the request fails.
        """
        if not self._token:
            return None

        coordinates = f"{origin.lon},{origin.lat};{destination.lon},{destination.lat}"
        url = MAPBOX_DIRECTIONS_URL.format(profile=mode.value, coordinates=coordinates)
        params = {
            "access_token": self._token,
            "alternatives": "false",
            "geometries": "polyline",
            "overview": "full",
        }
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.get(url, params=params)
            response.raise_for_status()
            data = response.json()

        routes = data.get("routes") or []
        if not routes:
            return None
        best = routes[0]
        return DirectionsResult(
            mode=mode.value,
            duration_seconds=round(best["duration"]),
            distance_meters=round(best["distance"], 1),
            geometry=best.get("geometry"),
            provider=self.name,
        )


class StraightLineDirections:
    """Rough estimate from great-circle distance; always answers."""

    name = "estimate"

    async def route(
        self, origin: Coordinate, destination: Coordinate, mode: DirectionsMode
    ) -> DirectionsResult | None:
        distance = (
            haversine_distance(origin.lat, origin.lon, destination.lat, destination.lon)
            * DETOUR_FACTOR
        )
        return DirectionsResult(
            mode=mode.value,
            duration_seconds=round(distance / ESTIMATE_SPEEDS[mode] * 60),
            distance_meters=round(distance, 1),
            provider=self.name,
        )


class DirectionsChain:
    """Ordered providers per mode; first non-empty answer wins."""

    name = "chain"

    def __init__(self, providers: Sequence[DirectionsProvider], timeout: float = 5.0):
        self._providers = list(providers)
        self._timeout = timeout

    async def route(
        self, origin: Coordinate, destination: Coordinate, mode: DirectionsMode
    ) -> DirectionsResult | None:
        for provider in self._providers:
            try:
                result = await asyncio.wait_for(
                    provider.route(origin, destination, mode), self._timeout
                )
            except TimeoutError:
                logger.warning(f"Directions provider {provider.name} timed out ({mode.value})")
                continue
            except Exception as e:
                logger.warning(f"Directions provider {provider.name} failed ({mode.value}): {e}")
                continue
            if result is not None:
                return result
        return None

    async def route_all_modes(
        self,
        origin: Coordinate,
        destination: Coordinate,
        modes: Sequence[DirectionsMode] = (DirectionsMode.WALKING, DirectionsMode.CYCLING),
    ) -> list[DirectionsResult]:
        """Query every mode concurrently, dropping modes with no answer."""
        results = await asyncio.gather(*(self.route(origin, destination, m) for m in modes))
        return [r for r in results if r is not None]
