"""MCP tools for finding stops."""

from oahu_transit.app import mcp
from oahu_transit.models.responses import NearbyStop, NearbyStopsResponse
from oahu_transit.services.feed_service import ensure_feed_loaded


@mcp.tool()
async def nearby_stops(
    lat: float,
    lon: float,
    radius_meters: int = 500,
    limit: int = 10,
) -> NearbyStopsResponse:
    """Find TheBus stops near a coordinate, nearest first.

    Examples:
        nearby_stops(lat=21.2906, lon=-157.8420)  # around Ala Moana Center

    Args:
        lat: Latitude in degrees.
        lon: Longitude in degrees.
        radius_meters: Search radius (default 500m, max 5000m).
        limit: Maximum number of stops to return (1-50, default 10).

    Returns:
        NearbyStopsResponse with stops, their routes and distances.
    """
    limit = max(1, min(50, limit))
    radius_meters = max(1, min(5000, radius_meters))

    store = await ensure_feed_loaded()
    state = store.state
    if state is None:
        return NearbyStopsResponse(
            stops=[], count=0, radius_meters=radius_meters, feed_loaded=False
        )

    found = state.geo_index.nearest_with_distance(lat, lon, radius_meters, limit)
    stops = [
        NearbyStop(
            stop_id=stop.stop_id,
            stop_name=stop.stop_name,
            stop_lat=stop.stop_lat,
            stop_lon=stop.stop_lon,
            route_ids=list(stop.route_ids),
            distance_meters=round(distance, 1),
        )
        for stop, distance in found
    ]
    return NearbyStopsResponse(
        stops=stops, count=len(stops), radius_meters=radius_meters, feed_loaded=True
    )
