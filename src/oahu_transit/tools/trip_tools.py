"""MCP tools for trip planning."""

import logging
import re
from datetime import UTC, datetime

from oahu_transit.app import mcp
from oahu_transit.errors import GeocodingError
from oahu_transit.models.gtfs import Coordinate
from oahu_transit.models.responses import PlanTripResponse, ResolvedLocation
from oahu_transit.services.fares import PassengerType
from oahu_transit.services.feed_service import ensure_feed_loaded, get_trip_planner

logger = logging.getLogger(__name__)

_COORDINATE_PATTERN = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*,\s*(-?\d+(?:\.\d+)?)\s*$")


def parse_location(text: str) -> Coordinate | str:
    """Treat "lat,lon" as a coordinate and anything else as a place name."""
    match = _COORDINATE_PATTERN.match(text)
    if match is None:
        return text
    return Coordinate(lat=float(match.group(1)), lon=float(match.group(2)))


def parse_departure_time(text: str | None) -> datetime | None:
    """Parse an ISO 8601 time; naive times are taken as UTC.

    Raises:
        ValueError: If the text is not an ISO 8601 time.
    """
    if not text:
        return None
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _failure(origin: str, destination: str, error: str) -> PlanTripResponse:
    return PlanTripResponse(
        origin=ResolvedLocation(query=origin, resolved=False),
        destination=ResolvedLocation(query=destination, resolved=False),
        count=0,
        success=False,
        error=error,
    )


@mcp.tool()
async def plan_trip(
    origin: str,
    destination: str,
    departure_time: str | None = None,
    passenger_type: str = "adult",
    has_transfer_pass: bool = False,
    include_realtime: bool = False,
    include_alternatives: bool = False,
    limit: int = 3,
) -> PlanTripResponse:
    """Plan a trip on TheBus and Skyline between two places on Oahu.

    Origin and destination may be "lat,lon" coordinates, addresses, landmarks
    or stop names. Itineraries are ranked by travel time, then fare, then
    number of transfers.

    Examples:
        plan_trip(origin="21.2906,-157.8420", destination="Waikiki")
        plan_trip(origin="Kapolei", destination="Ala Moana Center", passenger_type="senior")

    Args:
        origin: Starting point ("lat,lon" or free text).
        destination: End point ("lat,lon" or free text).
        departure_time: ISO 8601 departure time. Defaults to now when live data
            is requested, otherwise itineraries carry durations only.
        passenger_type: "adult", "youth" or "senior".
        has_transfer_pass: Rider holds a pass, so transfers add no fare.
        include_realtime: Adjust transit legs with live predictions and occupancy.
        include_alternatives: Also return walking and cycling estimates.
        limit: Maximum itineraries (1-5, default 3).

    Returns:
        PlanTripResponse with resolved endpoints and ranked itineraries.
        Itineraries with source "heuristic" are corridor estimates, not
        derived from the feed.
    """
    limit = max(1, min(5, limit))

    try:
        rider = PassengerType(passenger_type.lower())
    except ValueError:
        return _failure(origin, destination, f"Unknown passenger type: {passenger_type}")
    try:
        departure = parse_departure_time(departure_time)
        start = parse_location(origin)
        end = parse_location(destination)
    except ValueError as e:
        return _failure(origin, destination, f"Invalid input: {e}")

    await ensure_feed_loaded()
    planner = get_trip_planner()
    try:
        result = await planner.plan_trip(
            start,
            end,
            departure_time=departure,
            passenger_type=rider,
            has_transfer_pass=has_transfer_pass,
            include_realtime=include_realtime,
            include_alternatives=include_alternatives,
            limit=limit,
        )
    except GeocodingError as e:
        logger.info(f"Could not resolve trip endpoints: {e}")
        return _failure(origin, destination, str(e))

    return PlanTripResponse(
        origin=result.origin,
        destination=result.destination,
        itineraries=result.itineraries,
        alternatives=result.alternatives,
        departure_time=departure.isoformat() if departure else None,
        used_heuristic=result.used_heuristic,
        feed_version=result.feed_version,
        count=len(result.itineraries),
        success=True,
    )
