"""Proximity index over snapshot stops."""

import math
from collections.abc import Iterable

from oahu_transit.models.gtfs import Stop

# Earth's radius in meters for haversine calculation
EARTH_RADIUS_METERS = 6_371_000
METERS_PER_DEGREE_LAT = EARTH_RADIUS_METERS * math.pi / 180

DEFAULT_CELL_DEGREES = 0.01  # ~1.1 km of latitude


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate the great-circle distance between two points in meters.

    Args:
        lat1, lon1: First point coordinates in degrees.
        lat2, lon2: Second point coordinates in degrees.

    Returns:
        Distance in meters.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(h)))


class GeoIndex:
    """Uniform lat/lon grid of stops with exact haversine filtering.

    The grid only narrows candidates; results are always checked against the
    true distance, so a query that would touch more cells than the grid holds
    simply scans every stop instead.
    """

    def __init__(
        self,
        stops: Iterable[Stop] = (),
        cell_degrees: float = DEFAULT_CELL_DEGREES,
        exclude_zero_coordinates: bool = True,
    ):
        if cell_degrees <= 0:
            raise ValueError("cell_degrees must be positive")
        self._cell = cell_degrees
        self._stops: list[Stop] = []
        self._cells: dict[tuple[int, int], list[Stop]] = {}
        for stop in stops:
            if exclude_zero_coordinates and (stop.stop_lat == 0.0 or stop.stop_lon == 0.0):
                continue
            self._stops.append(stop)
            self._cells.setdefault(self._key(stop.stop_lat, stop.stop_lon), []).append(stop)

    def __len__(self) -> int:
        return len(self._stops)

    def _key(self, lat: float, lon: float) -> tuple[int, int]:
        return (math.floor(lat / self._cell), math.floor(lon / self._cell))

    def nearest(self, lat: float, lon: float, radius_meters: float, limit: int) -> list[Stop]:
        """Stops within radius_meters of (lat, lon), nearest first.

        Equidistant stops are ordered by stop_id. Returns an empty list when
        nothing is in range.
        """
        return [stop for stop, _ in self.nearest_with_distance(lat, lon, radius_meters, limit)]

    def nearest_with_distance(
        self, lat: float, lon: float, radius_meters: float, limit: int
    ) -> list[tuple[Stop, float]]:
        if limit <= 0 or radius_meters < 0 or not self._stops:
            return []

        found: list[tuple[float, str, Stop]] = []
        for stop in self._candidates(lat, lon, radius_meters):
            distance = haversine_distance(lat, lon, stop.stop_lat, stop.stop_lon)
            if distance <= radius_meters:
                found.append((distance, stop.stop_id, stop))

        found.sort(key=lambda item: (item[0], item[1]))
        return [(stop, distance) for distance, _, stop in found[:limit]]

    def _candidates(self, lat: float, lon: float, radius_meters: float) -> Iterable[Stop]:
        lat_span = radius_meters / METERS_PER_DEGREE_LAT
        poleward = min(90.0, abs(lat) + lat_span)
        cos_lat = math.cos(math.radians(poleward))
        if cos_lat < 1e-6:
            return self._stops
        lon_span = lat_span / cos_lat
        if abs(lon) + lon_span >= 180.0:
            # grid keys do not wrap at the antimeridian
            return self._stops

        # one extra ring of cells absorbs the small-angle approximation
        lat_steps = math.ceil(lat_span / self._cell) + 1
        lon_steps = math.ceil(lon_span / self._cell) + 1
        if (2 * lat_steps + 1) * (2 * lon_steps + 1) > len(self._cells):
            return self._stops

        center_lat, center_lon = self._key(lat, lon)
        candidates: list[Stop] = []
        for dy in range(-lat_steps, lat_steps + 1):
            for dx in range(-lon_steps, lon_steps + 1):
                bucket = self._cells.get((center_lat + dy, center_lon + dx))
                if bucket:
                    candidates.extend(bucket)
        return candidates
