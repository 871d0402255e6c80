import argparse
import asyncio
import logging
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel

from oahu_transit.app import mcp
from oahu_transit.data.config import get_config
from oahu_transit.services.feed_service import get_feed_store

# Importing the tool modules registers their tools on ``mcp``
from oahu_transit.tools import arrivals_tools, feed_tools, stop_tools, trip_tools  # noqa: F401


class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: str
    feed_loaded: bool = False
    feed_version: str | None = None


@mcp.tool()
def health() -> HealthResponse:
    """Report server liveness and whether a TheBus feed snapshot is being served.

    Does not trigger ingestion; use feed_status or refresh_feed for that.
    """
    from oahu_transit import __version__

    snapshot = get_feed_store().current_snapshot()
    return HealthResponse(
        status="ok",
        version=__version__,
        timestamp=datetime.now(UTC).isoformat(),
        feed_loaded=snapshot is not None,
        feed_version=snapshot.feed_version if snapshot else None,
    )


async def run_ingest(source: str | None, snapshot_path: Path) -> None:
    """Ingest a GTFS feed and write the snapshot cache."""
    from oahu_transit.data.feed_ingestor import FeedIngestor
    from oahu_transit.data.snapshot_cache import save_snapshot

    result = await FeedIngestor(get_config()).ingest(source)
    save_snapshot(result.snapshot, snapshot_path)

    summary = result.snapshot.summary()
    print(f"\nIngestion complete ({result.snapshot.feed_version or 'unversioned'}):")
    for key, count in summary.items():
        print(f"  {key}: {count:,}")
    diagnostics = result.diagnostics
    if diagnostics.total_skipped or diagnostics.zero_coordinate_stops:
        print("Diagnostics:")
        for key, value in diagnostics.as_dict().items():
            print(f"  {key}: {value}")
    print(f"Snapshot written to {snapshot_path}")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="oahu-transit",
        description="Oahu Transit MCP Server",
    )
    subparsers = parser.add_subparsers(dest="command")

    ingest_parser = subparsers.add_parser(
        "ingest",
        help="Ingest a GTFS feed and write the snapshot cache",
    )
    ingest_parser.add_argument(
        "source",
        nargs="?",
        default=None,
        help="GTFS URL, ZIP file or directory (default: OAHU_FEED_URL or TheBus feed)",
    )
    ingest_parser.add_argument(
        "--snapshot",
        type=Path,
        default=None,
        help="Snapshot cache path (default: OAHU_SNAPSHOT_PATH or data/feed-snapshot.json)",
    )
    ingest_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    subparsers.add_parser("serve", help="Run the MCP server (default)")

    args = parser.parse_args()

    if args.command == "ingest":
        log_level = logging.DEBUG if args.verbose else logging.INFO
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

        snapshot_path = args.snapshot or Path(get_config().snapshot_path)
        asyncio.run(run_ingest(args.source, snapshot_path))
    else:
        mcp.run()


if __name__ == "__main__":
    main()
