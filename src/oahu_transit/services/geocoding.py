"""Free-text place resolution as an ordered list of geocoding strategies."""

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Protocol
from urllib.parse import quote

import httpx
from pydantic import BaseModel

from oahu_transit.data.config import TransitConfig
from oahu_transit.matching import match_stops
from oahu_transit.models.gtfs import Coordinate, FeedSnapshot

logger = logging.getLogger(__name__)

MAPBOX_GEOCODING_URL = "https://api.mapbox.com/geocoding/v5/mapbox.places/{query}.json"

# Results are restricted to the island and biased toward Honolulu
OAHU_BBOX = (-158.2878, 21.2044, -157.6417, 21.7135)
HONOLULU = Coordinate(lat=21.3099, lon=-157.8583)

STOP_NAME_MIN_SCORE = 80.0


class GeocodeResult(BaseModel):
    name: str
    coordinate: Coordinate
    source: str
    relevance: float | None = None


class Geocoder(Protocol):
    name: str

    async def resolve(self, text: str, bias: Coordinate | None = None) -> list[GeocodeResult]: ...


class MapboxGeocoder:
    """Mapbox Places API. Returns nothing when no access token is configured."""

    name = "mapbox"

    def __init__(self, config: TransitConfig, limit: int = 5):
        self._token = config.mapbox_access_token
        self._timeout = config.collaborator_timeout_seconds
        self._limit = limit

    async def resolve(self, text: str, bias: Coordinate | None = None) -> list[GeocodeResult]:
        """Geocode text within Oahu.

        Raises:
            httpx.HTTPError: If the request fails.
        """
        if not self._token:
            logger.debug("No Mapbox token configured, skipping Mapbox geocoding")
            return []

        proximity = bias or HONOLULU
        params = {
            "access_token": self._token,
            "proximity": f"{proximity.lon},{proximity.lat}",
            "bbox": ",".join(str(v) for v in OAHU_BBOX),
            "country": "US",
            "limit": str(self._limit),
            "types": "address,poi,place",
        }
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.get(
                MAPBOX_GEOCODING_URL.format(query=quote(text.strip(), safe="")), params=params
            )
            response.raise_for_status()
            data = response.json()

        results: list[GeocodeResult] = []
        for feature in data.get("features", []):
            center = feature.get("center") or []
            if len(center) != 2:
                continue
            results.append(
                GeocodeResult(
                    name=feature.get("place_name") or feature.get("text") or text,
                    coordinate=Coordinate(lat=center[1], lon=center[0]),
                    source=self.name,
                    relevance=feature.get("relevance"),
                )
            )
        return results


class StopNameGeocoder:
    """Resolves text that names a stop in the current snapshot ("Ala Moana Center")."""

    name = "stop_name"

    def __init__(
        self,
        snapshot_provider: Callable[[], FeedSnapshot | None],
        min_score: float = STOP_NAME_MIN_SCORE,
    ):
        self._snapshot_provider = snapshot_provider
        self._min_score = min_score

    async def resolve(self, text: str, bias: Coordinate | None = None) -> list[GeocodeResult]:
        snapshot = self._snapshot_provider()
        if snapshot is None:
            return []
        matches = match_stops(text, snapshot, limit=3, min_score=self._min_score)
        return [
            GeocodeResult(
                name=m.stop.stop_name,
                coordinate=m.stop.coordinate,
                source=self.name,
                relevance=m.score / 100,
            )
            for m in matches
            if m.stop.stop_lat != 0.0 and m.stop.stop_lon != 0.0
        ]


class GeocoderChain:
    """Tries each strategy in order; the first non-empty answer wins.

    A strategy that errors or exceeds the timeout counts as having no answer.
    """

    def __init__(self, strategies: Sequence[Geocoder], timeout: float = 5.0):
        self._strategies = list(strategies)
        self._timeout = timeout

    async def resolve(self, text: str, bias: Coordinate | None = None) -> list[GeocodeResult]:
        for strategy in self._strategies:
            try:
                results = await asyncio.wait_for(strategy.resolve(text, bias), self._timeout)
            except TimeoutError:
                logger.warning(f"Geocoder {strategy.name} timed out for {text!r}")
                continue
            except Exception as e:
                logger.warning(f"Geocoder {strategy.name} failed for {text!r}: {e}")
                continue
            if results:
                return results
        return []
