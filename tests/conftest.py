"""Shared fixtures: a small TheBus-like GTFS feed.

Layout (route -> stops):
    8  -> A, B        (direct trip downtown -> Ala Moana)
    2  -> C, D
    13 -> E, G        (E is ~20 m from D, so 2 -> 13 is a one-transfer trip)
Stop Z has no coordinates and no service. Trip TX runs an unknown route,
one stop_time references an unknown stop and one an unknown trip.
"""

import zipfile
from datetime import UTC, datetime
from pathlib import Path

import pytest

from oahu_transit.data.config import TransitConfig
from oahu_transit.models.gtfs import FeedSnapshot, Route, Stop, build_snapshot

ROUTES_TXT = (
    "route_id,agency_id,route_short_name,route_long_name,route_type\n"
    "8,TheBus,8,Waikiki-Ala Moana,3\n"
    "2,TheBus,2,School-Middle Street,3\n"
    "13,TheBus,13,Liliha-Waikiki,3\n"
)

STOPS_TXT = (
    "stop_id,stop_code,stop_name,stop_lat,stop_lon\n"
    "A,1001,King St + Alakea St,21.30,-157.86\n"
    "B,1002,Ala Moana Blvd + Atkinson Dr,21.29,-157.84\n"
    "C,1003,Kalihi Transit Center,21.32,-157.90\n"
    "D,1004,Dillingham Blvd + Kokea St,21.31,-157.88\n"
    "E,1005,N King St + Kokea St,21.3102,-157.8800\n"
    "G,1006,Kapiʻolani Blvd + Kalākaua Ave,21.27,-157.82\n"
    "Z,1007,Unknown Stop,0,0\n"
    ",1008,Missing Id,21.31,-157.85\n"
)

TRIPS_TXT = (
    "route_id,service_id,trip_id,trip_headsign\n"
    "8,WK,T8,Ala Moana Center\n"
    "2,WK,T2,Kalihi\n"
    "13,WK,T13,Waikiki\n"
    "99,WK,TX,Nowhere\n"
)

STOP_TIMES_TXT = (
    "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"
    "T8,08:00:00,08:00:00,A,1\n"
    "T8,08:12:00,08:12:00,B,2\n"
    "T8,08:20:00,08:20:00,NOPE,3\n"
    "T2,09:00:00,09:00:00,C,1\n"
    "T2,09:10:00,09:10:00,D,2\n"
    "T13,09:15:00,09:15:00,E,1\n"
    "T13,09:40:00,09:40:00,G,2\n"
    "TX,10:00:00,10:00:00,A,1\n"
    "GHOST,10:00:00,10:00:00,A,1\n"
)

FEED_INFO_TXT = (
    "feed_publisher_name,feed_publisher_url,feed_lang,feed_version\n"
    "TheBus,https://www.thebus.org,en,2026-10-01\n"
)


def write_feed(directory: Path, feed_info: bool = True, **overrides: str) -> Path:
    """Write the sample tables into a directory; overrides replace or drop ("") a table."""
    directory.mkdir(parents=True, exist_ok=True)
    tables = {
        "routes.txt": ROUTES_TXT,
        "stops.txt": STOPS_TXT,
        "trips.txt": TRIPS_TXT,
        "stop_times.txt": STOP_TIMES_TXT,
    }
    if feed_info:
        tables["feed_info.txt"] = FEED_INFO_TXT
    for name, content in overrides.items():
        tables[f"{name}.txt"] = content
    for filename, content in tables.items():
        if content:
            (directory / filename).write_text(content, encoding="utf-8")
    return directory


@pytest.fixture
def sample_feed_dir(tmp_path: Path) -> Path:
    """Sample GTFS directory."""
    return write_feed(tmp_path / "gtfs")


@pytest.fixture
def sample_feed_zip(tmp_path: Path, sample_feed_dir: Path) -> Path:
    """Sample GTFS zipped with its tables nested under a folder, as some publishers do."""
    zip_path = tmp_path / "google_transit.zip"
    with zipfile.ZipFile(zip_path, "w") as zf:
        for table in sorted(sample_feed_dir.iterdir()):
            zf.write(table, f"google_transit/{table.name}")
    return zip_path


@pytest.fixture
def config() -> TransitConfig:
    """Config with every external collaborator switched off."""
    return TransitConfig(
        api_key=None,
        trip_updates_url=None,
        vehicle_positions_url=None,
        mapbox_access_token=None,
    )


@pytest.fixture
def snapshot() -> FeedSnapshot:
    """Small snapshot built directly, without parsing."""
    stops = [
        Stop(stop_id="A", stop_name="King St + Alakea St", stop_lat=21.30, stop_lon=-157.86),
        Stop(stop_id="B", stop_name="Ala Moana Blvd + Atkinson Dr", stop_lat=21.29, stop_lon=-157.84),
        Stop(stop_id="C", stop_name="Kalihi Transit Center", stop_lat=21.32, stop_lon=-157.90),
        Stop(stop_id="G", stop_name="Kapiʻolani Blvd + Kalākaua Ave", stop_lat=21.27, stop_lon=-157.82),
    ]
    routes = [
        Route(route_id="8", route_short_name="8", route_long_name="Waikiki-Ala Moana"),
        Route(route_id="2", route_short_name="2"),
        Route(route_id="SKY", route_long_name="Skyline", route_type=1),
    ]
    result, _ = build_snapshot(
        stops,
        routes,
        {"A": ["8"], "B": ["8", "SKY"], "C": ["2"]},
        ingested_at=datetime.now(UTC),
        feed_version="test",
    )
    return result


@pytest.fixture
def feed_writer():
    """The write_feed helper, for tests that need a variant of the sample feed."""
    return write_feed
