"""Leg timing, costing and itinerary assembly shared by both planning paths."""

from datetime import datetime, timedelta

from oahu_transit.data.geo_index import haversine_distance
from oahu_transit.models.gtfs import Coordinate, TransitMode
from oahu_transit.models.responses import (
    Confidence,
    Itinerary,
    ItinerarySource,
    Leg,
    Place,
)
from oahu_transit.services.fares import PassengerType, calculate_trip_cost, get_base_fare

# Travel speeds
WALK_SPEED_METERS_PER_MINUTE = 80
BUS_SPEED_KMH = 25
RAIL_SPEED_KMH = 40

TRANSFER_ALLOWANCE_MINUTES = 3


def walk_seconds(distance_meters: float) -> int:
    return round(distance_meters / WALK_SPEED_METERS_PER_MINUTE * 60)


def ride_seconds(distance_meters: float, mode: TransitMode) -> int:
    speed_kmh = RAIL_SPEED_KMH if mode is TransitMode.RAIL else BUS_SPEED_KMH
    return round(distance_meters / (speed_kmh * 1000 / 3600))


def distance_between(a: Coordinate, b: Coordinate) -> float:
    return haversine_distance(a.lat, a.lon, b.lat, b.lon)


def walk_leg(origin: Place, destination: Place, duration_seconds: int | None = None) -> Leg:
    distance = 0.0
    if origin.coordinate is not None and destination.coordinate is not None:
        distance = distance_between(origin.coordinate, destination.coordinate)
    if duration_seconds is None:
        duration_seconds = walk_seconds(distance)
    return Leg(
        mode=TransitMode.WALK,
        origin=origin,
        destination=destination,
        distance_meters=round(distance, 1),
        duration_seconds=duration_seconds,
    )


def transit_leg(
    origin: Place,
    destination: Place,
    route_id: str,
    route_name: str | None,
    mode: TransitMode = TransitMode.BUS,
    duration_seconds: int | None = None,
) -> Leg:
    distance = 0.0
    if origin.coordinate is not None and destination.coordinate is not None:
        distance = distance_between(origin.coordinate, destination.coordinate)
    return Leg(
        mode=mode,
        route_id=route_id,
        route_name=route_name,
        origin=origin,
        destination=destination,
        distance_meters=round(distance, 1),
        duration_seconds=(
            duration_seconds if duration_seconds is not None else ride_seconds(distance, mode)
        ),
    )


def build_itinerary(
    legs: list[Leg],
    passenger_type: PassengerType = PassengerType.ADULT,
    has_transfer_pass: bool = False,
    departure_time: datetime | None = None,
    transfer_allowance_seconds: int = TRANSFER_ALLOWANCE_MINUTES * 60,
    source: ItinerarySource = ItinerarySource.FEED,
    confidence: Confidence = Confidence.HIGH,
    notes: list[str] | None = None,
) -> Itinerary:
    """Attach fares and scheduled times to legs and total them up.

    Every transit boarding after the first adds ``transfer_allowance_seconds``
    of waiting before it. The first boarding carries the whole fare when a
    transfer pass is held; otherwise each boarding carries a base fare.
    """
    transit_count = sum(1 for leg in legs if leg.is_transit)
    num_transfers = max(0, transit_count - 1)
    base_fare = get_base_fare(passenger_type)

    finished: list[Leg] = []
    clock = departure_time
    elapsed = 0
    boardings = 0
    for leg in legs:
        update: dict = {}
        if leg.is_transit:
            if boardings > 0:
                elapsed += transfer_allowance_seconds
                if clock is not None:
                    clock += timedelta(seconds=transfer_allowance_seconds)
            update["cost"] = base_fare if boardings == 0 or not has_transfer_pass else 0.0
            boardings += 1
        if clock is not None:
            update["scheduled_departure"] = clock
            clock = clock + timedelta(seconds=leg.duration_seconds)
            update["scheduled_arrival"] = clock
        elapsed += leg.duration_seconds
        finished.append(leg.model_copy(update=update) if update else leg)

    total_cost = calculate_trip_cost(num_transfers, passenger_type, has_transfer_pass)
    if transit_count == 0:
        total_cost = 0.0

    return Itinerary(
        legs=finished,
        total_duration_seconds=elapsed,
        total_distance_meters=round(sum(leg.distance_meters for leg in finished), 1),
        total_cost=total_cost,
        num_transfers=num_transfers,
        score=float(elapsed),
        source=source,
        confidence=confidence,
        notes=notes or [],
    )


def rank_itineraries(itineraries: list[Itinerary]) -> list[Itinerary]:
    """Order by duration, then cost, then fewer transfers; discovery order breaks ties."""
    indexed = list(enumerate(itineraries))
    indexed.sort(
        key=lambda item: (
            item[1].total_duration_seconds,
            item[1].total_cost,
            item[1].num_transfers,
            item[0],
        )
    )
    return [itinerary for _, itinerary in indexed]
