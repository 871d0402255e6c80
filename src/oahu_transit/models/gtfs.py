"""Pydantic models for the static feed and the in-memory snapshot."""

from collections.abc import Iterable, Mapping
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

# GTFS route_type values served by rail vehicles (tram, subway, rail, cable, funicular, monorail)
RAIL_ROUTE_TYPES = frozenset({0, 1, 2, 5, 7, 12})


class TransitMode(str, Enum):
    """Mode of travel for a single leg."""

    WALK = "walk"
    BUS = "bus"
    RAIL = "rail"


class Coordinate(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)


class Stop(BaseModel):
    """A boarding location. Replaced wholesale on every ingestion."""

    model_config = ConfigDict(frozen=True)

    stop_id: str
    stop_name: str
    stop_lat: float
    stop_lon: float
    route_ids: tuple[str, ...] = ()

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(lat=self.stop_lat, lon=self.stop_lon)


class Route(BaseModel):
    model_config = ConfigDict(frozen=True)

    route_id: str
    route_short_name: str | None = None
    route_long_name: str | None = None
    route_type: int = 3  # 3=bus

    @property
    def mode(self) -> TransitMode:
        return TransitMode.RAIL if self.route_type in RAIL_ROUTE_TYPES else TransitMode.BUS

    @property
    def display_name(self) -> str:
        return self.route_short_name or self.route_long_name or self.route_id


class Trip(BaseModel):
    """Ingestion-only record linking a trip to its route."""

    trip_id: str
    route_id: str


class StopTime(BaseModel):
    """Ingestion-only record linking a trip to a stop it visits."""

    trip_id: str
    stop_id: str
    arrival_time: str | None = None  # HH:MM:SS, may exceed 24:00:00
    stop_sequence: int | None = None


class FeedSnapshot(BaseModel):
    """Immutable view of one ingested feed.

    Every stop id in ``stop_routes`` exists in ``stops`` and every route id
    in it exists in ``routes``; ``build_snapshot`` drops anything else.
    """

    model_config = ConfigDict(frozen=True)

    stops: tuple[Stop, ...] = ()
    routes: tuple[Route, ...] = ()
    stop_routes: dict[str, tuple[str, ...]] = Field(default_factory=dict)
    ingested_at: datetime
    feed_version: str | None = None
    source_hash: str | None = None

    _stops_by_id: dict[str, Stop] = PrivateAttr(default_factory=dict)
    _routes_by_id: dict[str, Route] = PrivateAttr(default_factory=dict)
    _stops_by_route: dict[str, tuple[Stop, ...]] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context) -> None:
        self._stops_by_id = {stop.stop_id: stop for stop in self.stops}
        self._routes_by_id = {route.route_id: route for route in self.routes}
        by_route: dict[str, list[Stop]] = {}
        for stop_id, route_ids in self.stop_routes.items():
            stop = self._stops_by_id.get(stop_id)
            if stop is None:
                continue
            for route_id in route_ids:
                by_route.setdefault(route_id, []).append(stop)
        self._stops_by_route = {
            route_id: tuple(sorted(stops, key=lambda s: s.stop_id))
            for route_id, stops in by_route.items()
        }

    @property
    def is_empty(self) -> bool:
        return not self.stops

    def get_stop(self, stop_id: str) -> Stop | None:
        return self._stops_by_id.get(stop_id)

    def get_route(self, route_id: str) -> Route | None:
        return self._routes_by_id.get(route_id)

    def routes_for_stop(self, stop_id: str) -> tuple[str, ...]:
        return self.stop_routes.get(stop_id, ())

    def stops_for_route(self, route_id: str) -> tuple[Stop, ...]:
        return self._stops_by_route.get(route_id, ())

    def same_content(self, other: "FeedSnapshot") -> bool:
        """Compare feed content, ignoring ingestion timestamps."""
        return (
            self.stops == other.stops
            and self.routes == other.routes
            and self.stop_routes == other.stop_routes
        )

    def summary(self) -> dict[str, int]:
        return {
            "stops": len(self.stops),
            "routes": len(self.routes),
            "stops_with_routes": len(self.stop_routes),
        }


def build_snapshot(
    stops: Iterable[Stop],
    routes: Iterable[Route],
    stop_routes: Mapping[str, Iterable[str]],
    ingested_at: datetime,
    feed_version: str | None = None,
    source_hash: str | None = None,
) -> tuple[FeedSnapshot, int]:
    """Assemble a snapshot, enforcing its referential invariant.

    Route lists are deduplicated and sorted, copied onto each Stop, and any
    reference to an unknown stop or route is dropped.

    Returns:
        The snapshot and the number of dangling references dropped.
    """
    stops_by_id = {stop.stop_id: stop for stop in stops}
    routes_by_id = {route.route_id: route for route in routes}

    dropped = 0
    index: dict[str, tuple[str, ...]] = {}
    for stop_id, route_ids in stop_routes.items():
        unique = set(route_ids)
        if stop_id not in stops_by_id:
            dropped += len(unique)
            continue
        known = sorted(r for r in unique if r in routes_by_id)
        dropped += len(unique) - len(known)
        if known:
            index[stop_id] = tuple(known)

    final_stops = tuple(
        stop.model_copy(update={"route_ids": index.get(stop_id, ())})
        for stop_id, stop in sorted(stops_by_id.items())
    )
    final_routes = tuple(route for _, route in sorted(routes_by_id.items()))

    snapshot = FeedSnapshot(
        stops=final_stops,
        routes=final_routes,
        stop_routes=index,
        ingested_at=ingested_at,
        feed_version=feed_version,
        source_hash=source_hash,
    )
    return snapshot, dropped
