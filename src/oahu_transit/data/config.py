from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

THEBUS_GTFS_URL = "https://www.thebus.org/transitdata/production/google_transit.zip"


class TransitConfig(BaseSettings):
    """Configuration for feed ingestion, realtime access and trip planning.

    Automatically loads from environment variables and .env file.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    # static feed
    feed_url: str = Field(default=THEBUS_GTFS_URL, alias="OAHU_FEED_URL")
    feed_timeout_seconds: float = Field(default=60.0, alias="OAHU_FEED_TIMEOUT")
    snapshot_path: str = Field(default="data/feed-snapshot.json", alias="OAHU_SNAPSHOT_PATH")
    snapshot_max_age_hours: float = Field(default=24.0, alias="OAHU_SNAPSHOT_MAX_AGE_HOURS")
    exclude_zero_coordinates: bool = True
    grid_cell_degrees: float = 0.01

    # GTFS-RT (disabled unless URLs are configured)
    api_key: str | None = Field(default=None, alias="THEBUS_API_KEY")
    trip_updates_url: str | None = Field(default=None, alias="THEBUS_RT_TRIP_UPDATES_URL")
    vehicle_positions_url: str | None = Field(
        default=None, alias="THEBUS_RT_VEHICLE_POSITIONS_URL"
    )
    cache_ttl_seconds: int = Field(default=30, alias="OAHU_RT_CACHE_TTL")

    # collaborators
    mapbox_access_token: str | None = Field(default=None, alias="MAPBOX_ACCESS_TOKEN")
    collaborator_timeout_seconds: float = Field(default=5.0, alias="OAHU_COLLABORATOR_TIMEOUT")

    # planning
    search_radii_meters: list[float] = [500.0, 800.0, 1500.0, 2000.0]
    max_candidate_stops: int = 5
    max_transfer_candidates: int = 200


@lru_cache
def get_config() -> TransitConfig:
    """Get transit configuration (cached singleton).

    Returns:
        TransitConfig with values from .env file or environment variables.
    """
    return TransitConfig()
