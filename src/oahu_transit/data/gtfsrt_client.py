from datetime import UTC, datetime

import httpx
from google.transit import gtfs_realtime_pb2

from oahu_transit.data.config import TransitConfig
from oahu_transit.models.realtime import (
    ArrivalsFeed,
    FeedHeader,
    OccupancyStatus,
    RealtimeArrival,
    VehiclePosition,
    VehiclesFeed,
)


def _timestamp(value: int) -> datetime | None:
    return datetime.fromtimestamp(value, UTC) if value else None


def _occupancy(message) -> OccupancyStatus | None:
    """Map a protobuf occupancy_status onto our enum, or None if unset/unknown."""
    if not message.HasField("occupancy_status"):
        return None
    name = gtfs_realtime_pb2.VehiclePosition.OccupancyStatus.Name(message.occupancy_status)
    try:
        return OccupancyStatus(name)
    except ValueError:
        # NO_DATA_AVAILABLE, NOT_ACCEPTING_PASSENGERS, NOT_BOARDABLE
        return None


class GTFSRTClient:
    """Async HTTP client for TheBus GTFS-RT feeds.

    Usage:
        async with GTFSRTClient(config) as client:
            feed = await client.fetch_arrivals()
    """

    def __init__(self, config: TransitConfig):
        self._config = config
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "GTFSRTClient":
        params = {}
        if self._config.api_key:
            params["key"] = self._config.api_key
        self._client = httpx.AsyncClient(params=params, timeout=30.0)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _fetch_feed(self, url: str | None) -> gtfs_realtime_pb2.FeedMessage:
        if not self._client:
            raise RuntimeError("Client not initialized - use 'async with'")
        if not url:
            raise RuntimeError("Feed URL not configured")

        response = await self._client.get(url)
        response.raise_for_status()

        feed = gtfs_realtime_pb2.FeedMessage()
        feed.ParseFromString(response.content)
        return feed

    async def fetch_arrivals(self) -> ArrivalsFeed:
        """Fetch the trip updates feed as per-stop arrival predictions.

        Raises:
            RuntimeError: If client not initialized or URL not configured.
            httpx.HTTPError: If the HTTP request fails.
            google.protobuf.message.DecodeError: If the payload is not a feed.
        """
        feed = await self._fetch_feed(self._config.trip_updates_url)
        return ArrivalsFeed(
            header=self._parse_header(feed),
            arrivals=self._parse_arrivals(feed),
            fetched_at=datetime.now(UTC),
        )

    async def fetch_vehicles(self) -> VehiclesFeed:
        """Fetch the vehicle positions feed.

        Raises:
            RuntimeError: If client not initialized or URL not configured.
            httpx.HTTPError: If the HTTP request fails.
        """
        feed = await self._fetch_feed(self._config.vehicle_positions_url)
        return VehiclesFeed(
            header=self._parse_header(feed),
            vehicles=self._parse_vehicles(feed),
            fetched_at=datetime.now(UTC),
        )

    def _parse_header(self, feed: gtfs_realtime_pb2.FeedMessage) -> FeedHeader:
        return FeedHeader(
            gtfs_realtime_version=feed.header.gtfs_realtime_version,
            timestamp=feed.header.timestamp,
        )

    def _parse_arrivals(self, feed: gtfs_realtime_pb2.FeedMessage) -> list[RealtimeArrival]:
        """Flatten every stop_time_update with a usable prediction.

        Updates without a route, a stop, or an absolute predicted time are
        skipped; a bare delay cannot be placed on the clock without the
        static schedule. Trips are not kept in the snapshot, so a trip
        update that names only its trip_id cannot be given a route and
        never reaches reconciliation.
        """
        arrivals: list[RealtimeArrival] = []
        for entity in feed.entity:
            if not entity.HasField("trip_update"):
                continue
            tu = entity.trip_update
            route_id = tu.trip.route_id or None
            vehicle_id = tu.vehicle.id if tu.HasField("vehicle") and tu.vehicle.id else None
            if route_id is None:
                continue

            for stu in tu.stop_time_update:
                if not stu.stop_id:
                    continue
                event = None
                if stu.HasField("arrival") and stu.arrival.time:
                    event = stu.arrival
                elif stu.HasField("departure") and stu.departure.time:
                    event = stu.departure
                if event is None:
                    continue

                arrivals.append(
                    RealtimeArrival(
                        stop_id=stu.stop_id,
                        route_id=route_id,
                        trip_id=tu.trip.trip_id or None,
                        vehicle_id=vehicle_id,
                        predicted_arrival=_timestamp(event.time),
                        delay_seconds=event.delay if event.HasField("delay") else None,
                    )
                )
        return arrivals

    def _parse_vehicles(self, feed: gtfs_realtime_pb2.FeedMessage) -> list[VehiclePosition]:
        vehicles: list[VehiclePosition] = []
        for entity in feed.entity:
            if not entity.HasField("vehicle"):
                continue
            vp = entity.vehicle
            if not vp.HasField("position"):
                continue

            vehicles.append(
                VehiclePosition(
                    vehicle_id=vp.vehicle.id or None,
                    trip_id=vp.trip.trip_id or None,
                    route_id=vp.trip.route_id or None,
                    latitude=vp.position.latitude,
                    longitude=vp.position.longitude,
                    bearing=vp.position.bearing if vp.position.bearing else None,
                    speed=vp.position.speed if vp.position.speed else None,
                    occupancy_status=_occupancy(vp),
                    timestamp=_timestamp(vp.timestamp),
                )
            )
        return vehicles
