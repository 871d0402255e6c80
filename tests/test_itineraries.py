"""Tests for leg timing, costing and ranking."""

from datetime import UTC, datetime, timedelta

from oahu_transit.models.gtfs import Coordinate, TransitMode
from oahu_transit.models.responses import Place
from oahu_transit.services.fares import PassengerType
from oahu_transit.services.itineraries import (
    build_itinerary,
    rank_itineraries,
    ride_seconds,
    transit_leg,
    walk_leg,
    walk_seconds,
)

HOME = Place(name="Home", coordinate=Coordinate(lat=21.3000, lon=-157.8600))
STOP_1 = Place(name="King St + Alakea St", stop_id="A", coordinate=Coordinate(lat=21.3000, lon=-157.8590))
STOP_2 = Place(name="Ala Moana Center", stop_id="B", coordinate=Coordinate(lat=21.2906, lon=-157.8420))
STOP_3 = Place(name="Kalakaua Ave + Kapahulu Ave", stop_id="C", coordinate=Coordinate(lat=21.2700, lon=-157.8200))


def test_walk_and_ride_speeds():
    assert walk_seconds(800) == 600
    assert ride_seconds(25_000, TransitMode.BUS) == 3600
    assert ride_seconds(40_000, TransitMode.RAIL) == 3600


def test_walk_leg_measures_distance():
    leg = walk_leg(HOME, STOP_1)
    assert leg.mode is TransitMode.WALK
    assert 100 < leg.distance_meters < 110
    assert leg.duration_seconds == walk_seconds(leg.distance_meters)
    assert leg.cost == 0.0


def _trip(has_transfer_pass: bool = False, departure: datetime | None = None):
    legs = [
        walk_leg(HOME, STOP_1),
        transit_leg(STOP_1, STOP_2, route_id="8", route_name="8", duration_seconds=600),
        transit_leg(STOP_2, STOP_3, route_id="13", route_name="13", duration_seconds=900),
    ]
    return build_itinerary(
        legs,
        passenger_type=PassengerType.ADULT,
        has_transfer_pass=has_transfer_pass,
        departure_time=departure,
    )


def test_build_itinerary_totals():
    itinerary = _trip()
    walk = itinerary.legs[0].duration_seconds
    assert itinerary.num_transfers == 1
    assert itinerary.total_duration_seconds == walk + 600 + 180 + 900
    assert itinerary.total_cost == 6.00
    assert [leg.cost for leg in itinerary.legs] == [0.0, 3.00, 3.00]


def test_transfer_pass_first_boarding_pays():
    itinerary = _trip(has_transfer_pass=True)
    assert itinerary.total_cost == 3.00
    assert [leg.cost for leg in itinerary.legs] == [0.0, 3.00, 0.0]


def test_scheduled_times_include_transfer_wait():
    departure = datetime(2026, 10, 19, 7, 30, tzinfo=UTC)
    legs = _trip(departure=departure).legs
    assert legs[0].scheduled_departure == departure
    assert legs[2].scheduled_departure == legs[1].scheduled_arrival + timedelta(minutes=3)


def test_walk_only_is_free():
    itinerary = build_itinerary([walk_leg(HOME, STOP_1)])
    assert itinerary.total_cost == 0.0
    assert itinerary.num_transfers == 0


def test_rank_by_duration_then_cost_then_transfers():
    fast = build_itinerary([transit_leg(STOP_1, STOP_2, "8", "8", duration_seconds=600)])
    slow = build_itinerary([transit_leg(STOP_1, STOP_2, "13", "13", duration_seconds=900)])
    cheap = build_itinerary(
        [transit_leg(STOP_1, STOP_2, "2", "2", duration_seconds=600)],
        passenger_type=PassengerType.SENIOR,
    )
    assert rank_itineraries([slow, fast, cheap]) == [cheap, fast, slow]


def test_rank_is_stable():
    first = build_itinerary([transit_leg(STOP_1, STOP_2, "8", "8", duration_seconds=600)])
    second = build_itinerary([transit_leg(STOP_1, STOP_2, "E", "E", duration_seconds=600)])
    ranked = rank_itineraries([first, second])
    assert [i.route_signature for i in ranked] == [("8",), ("E",)]
