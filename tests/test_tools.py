"""Tests for the MCP tool layer."""

from pathlib import Path

import pytest

from oahu_transit.data.feed_store import FeedStore
from oahu_transit.models.gtfs import Coordinate
from oahu_transit.services import feed_service, realtime_service
from oahu_transit.services.realtime_service import GTFSRTLiveFeed
from oahu_transit.tools.arrivals_tools import get_live_arrivals
from oahu_transit.tools.feed_tools import feed_status, refresh_feed
from oahu_transit.tools.stop_tools import nearby_stops
from oahu_transit.tools.trip_tools import parse_departure_time, parse_location, plan_trip


@pytest.fixture(autouse=True)
def reset_services():
    """Reset the service singletons before and after each test."""
    feed_service.reset_service()
    realtime_service.reset_service()
    yield
    feed_service.reset_service()
    realtime_service.reset_service()


@pytest.fixture
async def loaded(config, sample_feed_dir: Path) -> FeedStore:
    """Install a store holding the sample feed as the service singleton."""
    store = FeedStore(config=config)
    await store.ingest(sample_feed_dir)
    feed_service._config = config
    feed_service._store = store
    realtime_service._live_feed = GTFSRTLiveFeed(config)
    return store


class TestParsing:
    def test_coordinate_text(self):
        assert parse_location("21.2906, -157.8420") == Coordinate(lat=21.2906, lon=-157.8420)

    def test_place_name(self):
        assert parse_location("Ala Moana Center") == "Ala Moana Center"

    def test_out_of_range_coordinate(self):
        with pytest.raises(ValueError):
            parse_location("-157.84,21.29")

    def test_departure_time(self):
        assert parse_departure_time(None) is None
        parsed = parse_departure_time("2026-10-19T08:00:00")
        assert parsed.tzinfo is not None
        with pytest.raises(ValueError):
            parse_departure_time("tomorrow morning")


class TestNearbyStops:
    @pytest.mark.asyncio
    async def test_nearest_first(self, loaded):
        response = await nearby_stops(lat=21.3001, lon=-157.86, radius_meters=500)
        assert response.feed_loaded
        assert response.count == 1
        assert response.stops[0].stop_id == "A"
        assert response.stops[0].route_ids == ["8"]

    @pytest.mark.asyncio
    async def test_radius_clamped(self, loaded):
        response = await nearby_stops(lat=21.30, lon=-157.86, radius_meters=100_000, limit=100)
        assert response.radius_meters == 5000
        # the zero-coordinate stop never shows up
        assert "Z" not in {s.stop_id for s in response.stops}


class TestPlanTrip:
    @pytest.mark.asyncio
    async def test_coordinates(self, loaded):
        response = await plan_trip(origin="21.30,-157.86", destination="21.29,-157.84")
        assert response.success
        assert response.count == 1
        assert response.itineraries[0].route_signature == ("8",)
        assert response.feed_version == "2026-10-01"

    @pytest.mark.asyncio
    async def test_stop_name_origin(self, loaded):
        response = await plan_trip(origin="King St + Alakea St", destination="21.29,-157.84")
        assert response.success
        assert response.origin.resolved_by == "stop_name"

    @pytest.mark.asyncio
    async def test_unresolvable_place(self, loaded):
        response = await plan_trip(origin="zzzz qqqq", destination="21.29,-157.84")
        assert not response.success
        assert response.count == 0
        assert "zzzz qqqq" in response.error

    @pytest.mark.asyncio
    async def test_bad_passenger_type(self, loaded):
        response = await plan_trip(
            origin="21.30,-157.86", destination="21.29,-157.84", passenger_type="tourist"
        )
        assert not response.success

    @pytest.mark.asyncio
    async def test_bad_departure_time(self, loaded):
        response = await plan_trip(
            origin="21.30,-157.86", destination="21.29,-157.84", departure_time="soon"
        )
        assert not response.success
        assert response.error.startswith("Invalid input")

    @pytest.mark.asyncio
    async def test_departure_time_echoed(self, loaded):
        response = await plan_trip(
            origin="21.30,-157.86",
            destination="21.29,-157.84",
            departure_time="2026-10-19T08:00:00+00:00",
        )
        assert response.departure_time == "2026-10-19T08:00:00+00:00"

    @pytest.mark.asyncio
    async def test_realtime_without_feed_is_not_a_failure(self, loaded):
        response = await plan_trip(
            origin="21.30,-157.86", destination="21.29,-157.84", include_realtime=True
        )
        assert response.success
        assert not response.itineraries[0].realtime_applied
        assert not response.itineraries[0].realtime_soft_failure


class TestArrivals:
    @pytest.mark.asyncio
    async def test_no_live_feed(self, loaded):
        response = await get_live_arrivals(stop_id="A")
        assert not response.realtime_available
        assert response.arrivals == []


class TestFeedTools:
    @pytest.mark.asyncio
    async def test_status(self, loaded):
        status = await feed_status()
        assert status.loaded
        assert status.stops == 7
        assert status.routes == 3
        assert status.feed_version == "2026-10-01"
        assert not status.stale

    @pytest.mark.asyncio
    async def test_refresh_not_needed(self, loaded):
        status = await refresh_feed()
        assert status.loaded
        assert not status.ingest_in_progress
