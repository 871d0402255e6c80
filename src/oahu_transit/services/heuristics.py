"""Hand-maintained corridor table for trips the feed index cannot plan.

Used only when feed-based search produces nothing (no feed loaded, no stops
near an endpoint, or no connection). Every itinerary built here is marked
``source=heuristic`` with low confidence. Endpoints outside every listed
corridor get no itinerary at all.
"""

from dataclasses import dataclass, field
from datetime import datetime

from oahu_transit.data.geo_index import haversine_distance
from oahu_transit.models.gtfs import Coordinate
from oahu_transit.models.responses import Confidence, Itinerary, ItinerarySource, Leg, Place
from oahu_transit.services.fares import PassengerType
from oahu_transit.services.itineraries import build_itinerary, transit_leg, walk_leg

HEURISTIC_NOTE = "Estimated from known regional bus corridors, not from the current feed"


@dataclass(frozen=True)
class Region:
    name: str
    lat: float
    lon: float
    radius_meters: float

    def contains(self, lat: float, lon: float) -> bool:
        return haversine_distance(self.lat, self.lon, lat, lon) <= self.radius_meters


REGIONS: dict[str, Region] = {
    r.name: r
    for r in (
        Region("west_oahu", 21.3400, -158.0600, 10_000),  # Kapolei, Ewa, Makakilo
        Region("ko_olina", 21.3396, -158.1232, 2_000),
        Region("kalihi", 21.3300, -157.8700, 2_200),
        Region("downtown", 21.3099, -157.8581, 1_800),
        Region("ala_moana", 21.2906, -157.8420, 1_500),
        Region("waikiki", 21.2793, -157.8292, 1_800),
        Region("diamond_head", 21.2620, -157.8056, 1_500),
        Region("airport", 21.3245, -157.9251, 2_000),
        Region("pearl_harbor", 21.3675, -157.9395, 2_500),
        Region("kailua", 21.3972, -157.7394, 2_500),
        Region("lanikai", 21.3925, -157.7126, 1_200),
    )
}

TOWN = frozenset({"downtown", "ala_moana", "waikiki"})

ALA_MOANA_CENTER = ("Ala Moana Center", Coordinate(lat=21.2906, lon=-157.8420))
DOWNTOWN_TRANSFER = ("Downtown Honolulu", Coordinate(lat=21.3100, lon=-157.8580))
GULICK_AVE = ("Gulick Ave", Coordinate(lat=21.3300, lon=-157.8700))
LANIKAI_STOP = ("Kailua / Lanikai", Coordinate(lat=21.3925, lon=-157.7126))


@dataclass(frozen=True)
class CorridorRide:
    """One bus ride. A None board/alight point means "near the endpoint"."""

    route_id: str
    route_name: str
    minutes: int
    board: tuple[str, Coordinate] | None = None
    alight: tuple[str, Coordinate] | None = None


@dataclass(frozen=True)
class CorridorOption:
    rides: tuple[CorridorRide, ...]
    access_walk_minutes: int
    egress_walk_minutes: int


@dataclass(frozen=True)
class Corridor:
    origins: frozenset[str]
    destinations: frozenset[str]
    options: tuple[CorridorOption, ...]
    notes: tuple[str, ...] = field(default_factory=tuple)


CORRIDORS: tuple[Corridor, ...] = (
    Corridor(
        origins=frozenset({"west_oahu"}),
        destinations=frozenset({"ko_olina"}),
        options=(
            CorridorOption((CorridorRide("401", "Route 401 Ko Olina", 12),), 8, 5),
        ),
        notes=("Ko Olina is close to Kapolei; service is infrequent",),
    ),
    Corridor(
        origins=frozenset({"west_oahu"}),
        destinations=frozenset({"kalihi"}),
        options=(
            CorridorOption(
                (
                    CorridorRide("C", "Route C Country Express", 35, alight=DOWNTOWN_TRANSFER),
                    CorridorRide(
                        "1", "Route 1 Kalihi", 10, board=DOWNTOWN_TRANSFER, alight=GULICK_AVE
                    ),
                ),
                5,
                5,
            ),
            CorridorOption(
                (CorridorRide("41", "Route 41 Ewa Beach-Kalihi", 35, alight=GULICK_AVE),),
                5,
                5,
            ),
        ),
    ),
    Corridor(
        origins=frozenset({"west_oahu"}),
        destinations=frozenset({"ala_moana"}),
        options=(
            CorridorOption(
                (CorridorRide("40", "Route 40 Honolulu-Makaha", 35, alight=ALA_MOANA_CENTER),),
                5,
                5,
            ),
            CorridorOption(
                (CorridorRide("42", "Route 42 Ewa Beach-Waikiki", 45, alight=ALA_MOANA_CENTER),),
                5,
                5,
            ),
        ),
    ),
    Corridor(
        origins=frozenset({"west_oahu"}),
        destinations=frozenset({"downtown", "waikiki"}),
        options=(
            CorridorOption((CorridorRide("C", "Route C Country Express", 45),), 10, 10),
            CorridorOption((CorridorRide("40", "Route 40 Honolulu-Makaha", 65),), 8, 12),
        ),
    ),
    Corridor(
        origins=TOWN,
        destinations=frozenset({"kailua", "lanikai"}),
        options=(
            CorridorOption(
                (
                    CorridorRide(
                        "56", "Route 56 Kailua", 50, board=ALA_MOANA_CENTER, alight=LANIKAI_STOP
                    ),
                ),
                10,
                10,
            ),
            CorridorOption(
                (
                    CorridorRide(
                        "57", "Route 57 Kailua", 60, board=ALA_MOANA_CENTER, alight=LANIKAI_STOP
                    ),
                ),
                10,
                10,
            ),
        ),
    ),
    Corridor(
        origins=frozenset({"waikiki"}),
        destinations=frozenset({"diamond_head"}),
        options=(CorridorOption((CorridorRide("23", "Route 23 Hawaii Kai", 15),), 5, 5),),
    ),
    Corridor(
        origins=frozenset({"airport"}),
        destinations=frozenset({"waikiki"}),
        options=(CorridorOption((CorridorRide("20", "Route 20 Airport-Waikiki", 35),), 8, 2),),
    ),
    Corridor(
        origins=TOWN | {"airport"},
        destinations=frozenset({"pearl_harbor"}),
        options=(CorridorOption((CorridorRide("20", "Route 20 Airport-Waikiki", 40),), 8, 7),),
        notes=("Route 42 also serves Pearl Harbor", "Allow extra time for security screening"),
    ),
    Corridor(
        origins=frozenset({"waikiki"}),
        destinations=frozenset({"ala_moana"}),
        options=(CorridorOption((CorridorRide("8", "Route 8 Waikiki-Ala Moana", 10),), 5, 5),),
    ),
    Corridor(
        origins=frozenset({"ala_moana"}),
        destinations=frozenset({"waikiki"}),
        options=(CorridorOption((CorridorRide("8", "Route 8 Waikiki-Ala Moana", 10),), 5, 5),),
    ),
)


def regions_for(coordinate: Coordinate) -> set[str]:
    return {name for name, r in REGIONS.items() if r.contains(coordinate.lat, coordinate.lon)}


def find_corridor(origin: Coordinate, destination: Coordinate) -> Corridor | None:
    """First corridor in table order whose regions cover both endpoints."""
    origin_regions = regions_for(origin)
    destination_regions = regions_for(destination)
    for corridor in CORRIDORS:
        if corridor.origins & origin_regions and corridor.destinations & destination_regions:
            return corridor
    return None


class HeuristicPlanner:
    """Builds low-confidence itineraries from the corridor table."""

    def plan(
        self,
        origin: Coordinate,
        destination: Coordinate,
        passenger_type: PassengerType = PassengerType.ADULT,
        has_transfer_pass: bool = False,
        departure_time: datetime | None = None,
        origin_name: str = "Origin",
        destination_name: str = "Destination",
    ) -> list[Itinerary]:
        corridor = find_corridor(origin, destination)
        if corridor is None:
            return []

        start = Place(name=origin_name, coordinate=origin)
        end = Place(name=destination_name, coordinate=destination)
        return [
            build_itinerary(
                self._legs(option, start, end),
                passenger_type=passenger_type,
                has_transfer_pass=has_transfer_pass,
                departure_time=departure_time,
                transfer_allowance_seconds=0,  # table times already include waits
                source=ItinerarySource.HEURISTIC,
                confidence=Confidence.LOW,
                notes=[HEURISTIC_NOTE, *corridor.notes],
            )
            for option in corridor.options
        ]

    def _legs(self, option: CorridorOption, start: Place, end: Place) -> list[Leg]:
        first = option.rides[0]
        current = _place(first.board, f"Route {first.route_id} stop near origin", start)
        legs: list[Leg] = [walk_leg(start, current, option.access_walk_minutes * 60)]

        for ride in option.rides:
            if ride.board is not None:
                current = _place(ride.board, ride.board[0], start)
            alight = _place(ride.alight, f"Route {ride.route_id} stop near destination", end)
            legs.append(
                transit_leg(
                    current,
                    alight,
                    route_id=ride.route_id,
                    route_name=ride.route_name,
                    duration_seconds=ride.minutes * 60,
                )
            )
            current = alight

        legs.append(walk_leg(current, end, option.egress_walk_minutes * 60))
        return legs


def _place(point: tuple[str, Coordinate] | None, fallback_name: str, near: Place) -> Place:
    if point is None:
        return Place(name=fallback_name, coordinate=near.coordinate)
    name, coordinate = point
    return Place(name=name, coordinate=coordinate)
