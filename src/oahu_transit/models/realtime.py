"""Pydantic models for live GTFS-RT data.

Protobuf messages are flattened into these records at the client boundary;
nothing downstream touches the raw feed.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict


class OccupancyStatus(str, Enum):
    """Vehicle crowding, ordered from empty to full."""

    EMPTY = "EMPTY"
    MANY_SEATS_AVAILABLE = "MANY_SEATS_AVAILABLE"
    FEW_SEATS_AVAILABLE = "FEW_SEATS_AVAILABLE"
    STANDING_ROOM_ONLY = "STANDING_ROOM_ONLY"
    CRUSHED_STANDING_ROOM_ONLY = "CRUSHED_STANDING_ROOM_ONLY"
    FULL = "FULL"

    @property
    def level(self) -> int:
        """Ordinal crowding level, 0 (empty) to 5 (full)."""
        return list(OccupancyStatus).index(self)


class RealtimeArrival(BaseModel):
    """Predicted arrival of one vehicle at one stop."""

    model_config = ConfigDict(frozen=True)

    stop_id: str
    route_id: str
    trip_id: str | None = None
    vehicle_id: str | None = None
    predicted_arrival: datetime
    delay_seconds: int | None = None  # positive = late
    occupancy_status: OccupancyStatus | None = None


class VehiclePosition(BaseModel):
    model_config = ConfigDict(frozen=True)

    vehicle_id: str | None = None
    trip_id: str | None = None
    route_id: str | None = None
    latitude: float
    longitude: float
    bearing: float | None = None
    speed: float | None = None  # meters/second
    occupancy_status: OccupancyStatus | None = None
    timestamp: datetime | None = None


class FeedHeader(BaseModel):
    gtfs_realtime_version: str
    timestamp: int


class ArrivalsFeed(BaseModel):
    """All predictions from one trip updates fetch."""

    header: FeedHeader
    arrivals: list[RealtimeArrival] = []
    fetched_at: datetime


class VehiclesFeed(BaseModel):
    """All positions from one vehicle positions fetch."""

    header: FeedHeader
    vehicles: list[VehiclePosition] = []
    fetched_at: datetime
