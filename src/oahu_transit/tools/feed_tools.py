"""MCP tools for inspecting and refreshing the static feed."""

from oahu_transit.app import mcp
from oahu_transit.data.feed_store import FeedStore
from oahu_transit.models.responses import FeedStatusResponse
from oahu_transit.services.feed_service import get_feed_store


def build_feed_status(store: FeedStore) -> FeedStatusResponse:
    snapshot = store.current_snapshot()
    if snapshot is None:
        return FeedStatusResponse(
            loaded=False,
            ingest_in_progress=store.ingest_in_progress,
            stale=True,
            last_error=str(store.last_error) if store.last_error else None,
        )
    summary = snapshot.summary()
    return FeedStatusResponse(
        loaded=True,
        ingested_at=snapshot.ingested_at.isoformat(),
        feed_version=snapshot.feed_version,
        source_hash=snapshot.source_hash,
        stops=summary["stops"],
        routes=summary["routes"],
        stops_with_routes=summary["stops_with_routes"],
        ingest_in_progress=store.ingest_in_progress,
        stale=store.is_stale(),
        last_error=str(store.last_error) if store.last_error else None,
    )


@mcp.tool()
async def feed_status() -> FeedStatusResponse:
    """Report which TheBus feed snapshot is being served and how fresh it is."""
    store = get_feed_store()
    if store.state is None:
        await store.load_cached()
    return build_feed_status(store)


@mcp.tool()
async def refresh_feed(force: bool = False) -> FeedStatusResponse:
    """Start re-ingesting the TheBus feed in the background.

    The current snapshot keeps being served until the new one is ready.

    Args:
        force: Re-ingest even if the current snapshot is still fresh.
    """
    store = get_feed_store()
    await store.refresh(force=force)
    return build_feed_status(store)
