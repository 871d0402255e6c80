"""Table-level parsing of a static GTFS archive into typed records."""

import csv
import io
import logging
import math
import zipfile
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import TextIO

from oahu_transit.errors import ParseError
from oahu_transit.models.gtfs import Route, Stop, StopTime, Trip

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TableDefinition:
    filename: str
    columns: tuple[str, ...]  # must appear in the header
    optional_columns: tuple[str, ...] = ()
    required_values: tuple[str, ...] = ()  # rows lacking any of these are skipped


TABLES: dict[str, TableDefinition] = {
    "stops": TableDefinition(
        "stops.txt",
        columns=("stop_id", "stop_name", "stop_lat", "stop_lon"),
        required_values=("stop_id",),
    ),
    "routes": TableDefinition(
        "routes.txt",
        columns=("route_id",),
        optional_columns=("route_short_name", "route_long_name", "route_type"),
        required_values=("route_id",),
    ),
    "trips": TableDefinition(
        "trips.txt",
        columns=("trip_id", "route_id"),
        required_values=("trip_id", "route_id"),
    ),
    "stop_times": TableDefinition(
        "stop_times.txt",
        columns=("trip_id", "stop_id"),
        optional_columns=("arrival_time", "stop_sequence"),
        required_values=("trip_id", "stop_id"),
    ),
    "feed_info": TableDefinition(
        "feed_info.txt",
        columns=(),
        optional_columns=("feed_publisher_name", "feed_version"),
    ),
}

REQUIRED_TABLES = ("stops", "routes", "trips", "stop_times")
OPTIONAL_TABLES = ("feed_info",)

DEFAULT_ROUTE_TYPE = 3


@dataclass
class IngestDiagnostics:
    """What ingestion tolerated instead of failing."""

    row_counts: dict[str, int] = field(default_factory=dict)
    skipped_rows: dict[str, int] = field(default_factory=dict)
    zero_coordinate_stops: list[str] = field(default_factory=list)
    missing_optional_tables: list[str] = field(default_factory=list)
    dangling_references: int = 0
    orphan_stop_times: int = 0

    @property
    def total_skipped(self) -> int:
        return sum(self.skipped_rows.values())

    def as_dict(self) -> dict[str, object]:
        return {
            "row_counts": dict(self.row_counts),
            "skipped_rows": dict(self.skipped_rows),
            "zero_coordinate_stops": len(self.zero_coordinate_stops),
            "missing_optional_tables": list(self.missing_optional_tables),
            "dangling_references": self.dangling_references,
            "orphan_stop_times": self.orphan_stop_times,
        }


class FeedArchive:
    """Read-only access to feed tables in a ZIP archive or a directory.

    Usage:
        with FeedArchive.open(path) as archive:
            with archive.open_table("stops.txt") as f:
                ...
    """

    def __init__(self, zf: zipfile.ZipFile | None = None, directory: Path | None = None):
        self._zf = zf
        self._directory = directory
        self._members: dict[str, str] = {}
        if zf is not None:
            # Some publishers nest tables under a top-level folder
            for name in zf.namelist():
                base = PurePosixPath(name).name
                if base and base not in self._members:
                    self._members[base] = name

    @classmethod
    def open(cls, path: Path) -> "FeedArchive":
        path = Path(path)
        if path.is_dir():
            return cls(directory=path)
        try:
            return cls(zf=zipfile.ZipFile(path, "r"))
        except zipfile.BadZipFile as e:
            raise ParseError(f"{path.name} is not a valid ZIP archive") from e

    @classmethod
    def from_bytes(cls, data: bytes) -> "FeedArchive":
        try:
            return cls(zf=zipfile.ZipFile(io.BytesIO(data), "r"))
        except zipfile.BadZipFile as e:
            raise ParseError("Feed payload is not a valid ZIP archive") from e

    def __enter__(self) -> "FeedArchive":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        if self._zf is not None:
            self._zf.close()
            self._zf = None

    def has_table(self, filename: str) -> bool:
        if self._directory is not None:
            return (self._directory / filename).is_file()
        return filename in self._members

    @contextmanager
    def open_table(self, filename: str) -> Iterator[TextIO]:
        if self._directory is not None:
            with open(self._directory / filename, encoding="utf-8-sig", newline="") as f:
                yield f
            return
        if self._zf is None:
            raise RuntimeError("Archive is closed")
        with self._zf.open(self._members[filename]) as raw:
            yield io.TextIOWrapper(raw, encoding="utf-8-sig", newline="")


class FeedParser:
    """Turns feed tables into typed records, counting what it skips."""

    def __init__(self, archive: FeedArchive, diagnostics: IngestDiagnostics | None = None):
        self._archive = archive
        self.diagnostics = diagnostics or IngestDiagnostics()

    def check_required_tables(self) -> None:
        """Raise ParseError if any required table is absent."""
        missing = [
            TABLES[name].filename
            for name in REQUIRED_TABLES
            if not self._archive.has_table(TABLES[name].filename)
        ]
        if missing:
            raise ParseError(f"Required tables missing: {', '.join(missing)}")

    def parse_stops(self) -> list[Stop]:
        stops: list[Stop] = []
        for row in self.iter_rows("stops"):
            lat = _coerce_coordinate(row.get("stop_lat"))
            lon = _coerce_coordinate(row.get("stop_lon"))
            if lat is None or lon is None:
                self.diagnostics.zero_coordinate_stops.append(row["stop_id"])
                lat = lat if lat is not None else 0.0
                lon = lon if lon is not None else 0.0
            stops.append(
                Stop(
                    stop_id=row["stop_id"],
                    stop_name=row.get("stop_name") or row["stop_id"],
                    stop_lat=lat,
                    stop_lon=lon,
                )
            )
        return stops

    def parse_routes(self) -> list[Route]:
        routes: list[Route] = []
        for row in self.iter_rows("routes"):
            routes.append(
                Route(
                    route_id=row["route_id"],
                    route_short_name=row.get("route_short_name") or None,
                    route_long_name=row.get("route_long_name") or None,
                    route_type=_coerce_int(row.get("route_type"), DEFAULT_ROUTE_TYPE),
                )
            )
        return routes

    def parse_trips(self) -> list[Trip]:
        return [
            Trip(trip_id=row["trip_id"], route_id=row["route_id"])
            for row in self.iter_rows("trips")
        ]

    def iter_stop_times(self) -> Iterator[StopTime]:
        """Stream stop_times; the table is far too large to materialize."""
        for row in self.iter_rows("stop_times"):
            yield StopTime(
                trip_id=row["trip_id"],
                stop_id=row["stop_id"],
                arrival_time=row.get("arrival_time") or None,
                stop_sequence=_coerce_int(row.get("stop_sequence"), None),
            )

    def parse_feed_version(self) -> str | None:
        """Return feed_info.feed_version, or None if the table is absent."""
        filename = TABLES["feed_info"].filename
        if not self._archive.has_table(filename):
            logger.warning(f"Optional file {filename} not found")
            self.diagnostics.missing_optional_tables.append(filename)
            return None
        for row in self.iter_rows("feed_info"):
            if row.get("feed_version"):
                return row["feed_version"]
        return None

    def iter_rows(self, table_name: str) -> Iterator[dict[str, str]]:
        """Yield rows of one table as dicts keyed by normalized column name.

        Raises:
            ParseError: If the table is missing, empty, lacks required
                columns, or yields no usable rows.
        """
        definition = TABLES[table_name]
        if not self._archive.has_table(definition.filename):
            raise ParseError(f"Required table {definition.filename} not found")

        logger.info(f"Loading {table_name} from {definition.filename}...")
        total_rows = 0
        skipped_rows = 0
        try:
            with self._archive.open_table(definition.filename) as f:
                reader = csv.reader(f)
                header_index = self._build_header_index(reader, definition)
                for row in reader:
                    if not row or not any(cell.strip() for cell in row):
                        continue
                    row_dict = self._row_from_index(row, header_index)
                    if not self._has_required_values(row_dict, definition.required_values):
                        skipped_rows += 1
                        continue
                    total_rows += 1
                    yield row_dict
        except (csv.Error, UnicodeDecodeError, zipfile.BadZipFile) as e:
            raise ParseError(f"{definition.filename} is unreadable: {e}") from e

        self.diagnostics.row_counts[table_name] = total_rows
        if skipped_rows:
            self.diagnostics.skipped_rows[table_name] = skipped_rows
        logger.info(
            f"  Loaded {total_rows:,} rows from {table_name}"
            + (f" (skipped {skipped_rows:,} invalid)" if skipped_rows else "")
        )
        if table_name in REQUIRED_TABLES and total_rows == 0:
            raise ParseError(f"No valid rows in {definition.filename}")

    def _normalize_header(self, name: str) -> str:
        # a BOM that survived decoding, either intact or as mis-decoded UTF-8 bytes
        cleaned = name.strip().removeprefix("\ufeff").removeprefix("\u00ef\u00bb\u00bf")
        return cleaned.strip().strip('"').lower()

    def _build_header_index(self, reader, definition: TableDefinition) -> dict[str, int]:
        header = next(reader, None)
        if header is None:
            raise ParseError(f"{definition.filename} is empty")
        expected = set(definition.columns) | set(definition.optional_columns)
        header_index: dict[str, int] = {}
        for idx, name in enumerate(header):
            normalized = self._normalize_header(name)
            if normalized in expected and normalized not in header_index:
                header_index[normalized] = idx
        missing = [col for col in definition.columns if col not in header_index]
        if missing:
            raise ParseError(f"{definition.filename} missing columns: {', '.join(missing)}")
        return header_index

    def _row_from_index(self, row: list[str], header_index: dict[str, int]) -> dict[str, str]:
        return {
            col: row[idx].strip() if idx < len(row) else ""
            for col, idx in header_index.items()
        }

    def _has_required_values(self, row: dict[str, str], required: tuple[str, ...]) -> bool:
        return all(row.get(col) for col in required)


def _coerce_coordinate(value: str | None) -> float | None:
    """Parse a coordinate, returning None when it is absent, garbage or 0."""
    if not value:
        return None
    try:
        parsed = float(value)
    except ValueError:
        return None
    if not math.isfinite(parsed) or parsed == 0.0:
        return None
    return parsed


def _coerce_int(value: str | None, default: int | None) -> int | None:
    if not value:
        return default
    try:
        return int(float(value))
    except ValueError:
        return default
