"""Tests for the regional corridor fallback."""

from oahu_transit.models.gtfs import Coordinate
from oahu_transit.models.responses import Confidence, ItinerarySource
from oahu_transit.services.fares import PassengerType
from oahu_transit.services.heuristics import (
    HEURISTIC_NOTE,
    HeuristicPlanner,
    find_corridor,
    regions_for,
)

KAPOLEI = Coordinate(lat=21.3356, lon=-158.0580)
KALIHI = Coordinate(lat=21.3300, lon=-157.8700)
WAIKIKI = Coordinate(lat=21.2793, lon=-157.8292)
DIAMOND_HEAD = Coordinate(lat=21.2620, lon=-157.8056)
AIRPORT = Coordinate(lat=21.3245, lon=-157.9251)
LANIKAI = Coordinate(lat=21.3925, lon=-157.7126)
NORTH_SHORE = Coordinate(lat=21.6400, lon=-158.0600)


def test_regions_for():
    assert "west_oahu" in regions_for(KAPOLEI)
    assert "waikiki" in regions_for(WAIKIKI)
    assert regions_for(NORTH_SHORE) == set()


def test_find_corridor_is_directional():
    assert find_corridor(AIRPORT, WAIKIKI) is not None
    assert find_corridor(WAIKIKI, AIRPORT) is None


def test_unknown_region_gets_nothing():
    """No generic advice for areas outside the table."""
    assert HeuristicPlanner().plan(NORTH_SHORE, WAIKIKI) == []


def test_single_ride_corridor():
    [itinerary] = HeuristicPlanner().plan(WAIKIKI, DIAMOND_HEAD)

    assert itinerary.route_signature == ("23",)
    assert itinerary.source is ItinerarySource.HEURISTIC
    assert itinerary.confidence is Confidence.LOW
    assert itinerary.notes[0] == HEURISTIC_NOTE
    assert itinerary.total_duration_seconds == (5 + 15 + 5) * 60
    assert itinerary.total_cost == 3.00


def test_transfer_corridor_costs():
    """Kapolei -> Kalihi via the C and route 1 pays two fares without a pass."""
    itineraries = HeuristicPlanner().plan(KAPOLEI, KALIHI)
    by_routes = {i.route_signature: i for i in itineraries}

    via_downtown = by_routes[("C", "1")]
    assert via_downtown.num_transfers == 1
    assert via_downtown.total_cost == 6.00
    assert via_downtown.total_duration_seconds == (5 + 35 + 10 + 5) * 60

    with_pass = HeuristicPlanner().plan(KAPOLEI, KALIHI, has_transfer_pass=True)
    assert {i.route_signature: i for i in with_pass}[("C", "1")].total_cost == 3.00

    assert by_routes[("41",)].num_transfers == 0


def test_passenger_type_and_names():
    [first, _] = HeuristicPlanner().plan(
        WAIKIKI,
        LANIKAI,
        passenger_type=PassengerType.YOUTH,
        origin_name="Waikiki Beach",
        destination_name="Lanikai Beach",
    )
    assert first.total_cost == 1.50
    assert first.legs[0].origin.name == "Waikiki Beach"
    assert first.legs[-1].destination.name == "Lanikai Beach"
    assert first.legs[1].origin.name == "Ala Moana Center"
