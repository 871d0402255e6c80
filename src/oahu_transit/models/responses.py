from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from oahu_transit.models.gtfs import Coordinate, TransitMode
from oahu_transit.models.realtime import OccupancyStatus


class ItinerarySource(str, Enum):
    """Indicates whether an itinerary came from the feed index or the regional corridor table."""
    FEED = "feed"
    HEURISTIC = "heuristic"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Place(BaseModel):
    """One end of a leg."""

    model_config = ConfigDict(frozen=True)

    name: str
    stop_id: str | None = None
    coordinate: Coordinate | None = None


# Trip Planning Models


class Leg(BaseModel):
    """Single segment of an itinerary: a walk or one vehicle ride."""

    model_config = ConfigDict(frozen=True)

    mode: TransitMode
    route_id: str | None = Field(default=None, description="Set for transit legs only")
    route_name: str | None = Field(default=None, description="Bus number or line name")

    origin: Place
    destination: Place

    distance_meters: float
    duration_seconds: int
    cost: float = Field(default=0.0, description="Fare attributed to this leg in USD")

    scheduled_departure: datetime | None = None
    scheduled_arrival: datetime | None = None

    # Live data (only present once reconciled against a live feed)
    predicted_departure: datetime | None = None
    delay_seconds: int | None = Field(
        default=None, description="Predicted minus scheduled, positive = late"
    )
    occupancy_status: OccupancyStatus | None = None
    vehicle_id: str | None = None
    realtime: bool = False

    @property
    def is_transit(self) -> bool:
        return self.mode is not TransitMode.WALK


class Itinerary(BaseModel):
    """Complete journey from origin to destination."""

    legs: list[Leg] = Field(description="Ordered list of legs")

    total_duration_seconds: int
    total_distance_meters: float
    total_cost: float = Field(description="Fare for the whole journey in USD")
    num_transfers: int = Field(description="Number of transit legs minus one")
    score: float = Field(description="Ranking score, lower is better")

    source: ItinerarySource = ItinerarySource.FEED
    confidence: Confidence = Confidence.HIGH
    notes: list[str] = Field(default_factory=list)

    realtime_applied: bool = False
    realtime_soft_failure: bool = Field(
        default=False, description="Live data was requested but unavailable"
    )

    @property
    def route_signature(self) -> tuple[str, ...]:
        return tuple(leg.route_id for leg in self.legs if leg.route_id is not None)


class DirectionsResult(BaseModel):
    """Non-transit alternative from a directions provider."""

    mode: str = Field(description="walking, cycling or driving")
    duration_seconds: int
    distance_meters: float
    geometry: str | None = Field(default=None, description="Encoded polyline")
    provider: str


class ResolvedLocation(BaseModel):
    """How an origin or destination was resolved."""

    query: str | None = Field(default=None, description="Original text, if text was given")
    name: str | None = None
    coordinate: Coordinate | None = None
    resolved: bool
    resolved_by: str | None = Field(default=None, description="Geocoder strategy that answered")
    error: str | None = None


class PlanTripResponse(BaseModel):
    """Response from plan_trip tool."""

    origin: ResolvedLocation
    destination: ResolvedLocation

    itineraries: list[Itinerary] = Field(default_factory=list)
    alternatives: list[DirectionsResult] = Field(default_factory=list)

    departure_time: str | None = Field(default=None, description="ISO departure time used")
    used_heuristic: bool = False
    feed_version: str | None = None

    count: int
    success: bool
    error: str | None = None


class NearbyStop(BaseModel):
    stop_id: str
    stop_name: str
    stop_lat: float
    stop_lon: float
    route_ids: list[str] = Field(default_factory=list)
    distance_meters: float


class NearbyStopsResponse(BaseModel):
    stops: list[NearbyStop]
    count: int = Field(description="Number of stops returned")
    radius_meters: float
    feed_loaded: bool


class LiveArrival(BaseModel):
    stop_id: str
    route_id: str
    route_name: str | None = None
    vehicle_id: str | None = None
    predicted_arrival: str = Field(description="ISO timestamp")
    minutes_until: int
    delay_seconds: int | None = None
    occupancy_status: OccupancyStatus | None = None


class LiveArrivalsResponse(BaseModel):
    arrivals: list[LiveArrival]
    count: int
    realtime_available: bool = Field(
        description="Whether a live feed is configured and reachable"
    )


class FeedStatusResponse(BaseModel):
    loaded: bool
    ingested_at: str | None = None
    feed_version: str | None = None
    source_hash: str | None = None
    stops: int = 0
    routes: int = 0
    stops_with_routes: int = 0
    ingest_in_progress: bool = False
    stale: bool = False
    last_error: str | None = None
