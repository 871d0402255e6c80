"""MCP tools for live arrivals."""

import logging
from datetime import UTC, datetime

from oahu_transit.app import mcp
from oahu_transit.errors import RealtimeUnavailableError
from oahu_transit.models.responses import LiveArrival, LiveArrivalsResponse
from oahu_transit.services.feed_service import get_feed_store
from oahu_transit.services.realtime_service import get_live_feed

logger = logging.getLogger(__name__)


@mcp.tool()
async def get_live_arrivals(
    stop_id: str,
    route_id: str | None = None,
    limit: int = 10,
) -> LiveArrivalsResponse:
    """Get predicted arrivals at a stop from TheBus live feed.

    Use nearby_stops first to find stop IDs.

    Args:
        stop_id: The stop ID (e.g., "983").
        route_id: Optional route filter (e.g., "8").
        limit: Maximum arrivals to return (1-50, default 10).

    Returns:
        LiveArrivalsResponse with arrivals soonest first. realtime_available is
        False when no live feed is configured or it could not be reached.
    """
    limit = max(1, min(50, limit))

    feed = get_live_feed()
    if not feed.is_available:
        return LiveArrivalsResponse(arrivals=[], count=0, realtime_available=False)

    try:
        predictions = await feed.arrivals(stop_id)
    except RealtimeUnavailableError as e:
        logger.warning(f"Live arrivals unavailable for stop {stop_id}: {e}")
        return LiveArrivalsResponse(arrivals=[], count=0, realtime_available=False)

    if route_id:
        predictions = [p for p in predictions if p.route_id == route_id]

    snapshot = get_feed_store().current_snapshot()
    now = datetime.now(UTC)
    arrivals: list[LiveArrival] = []
    for p in predictions[:limit]:
        route = snapshot.get_route(p.route_id) if snapshot else None
        arrivals.append(
            LiveArrival(
                stop_id=p.stop_id,
                route_id=p.route_id,
                route_name=route.display_name if route else None,
                vehicle_id=p.vehicle_id,
                predicted_arrival=p.predicted_arrival.isoformat(),
                minutes_until=max(0, int((p.predicted_arrival - now).total_seconds() // 60)),
                delay_seconds=p.delay_seconds,
                occupancy_status=p.occupancy_status,
            )
        )
    return LiveArrivalsResponse(arrivals=arrivals, count=len(arrivals), realtime_available=True)
