"""Tests for snapshot swapping and single-flight ingestion."""

import asyncio
import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from oahu_transit.data.feed_ingestor import IngestResult
from oahu_transit.data.feed_parser import IngestDiagnostics
from oahu_transit.data.feed_store import FeedStore
from oahu_transit.data.snapshot_cache import save_snapshot
from oahu_transit.errors import FetchError


class GatedIngestor:
    """Counts calls and holds each ingestion until released."""

    def __init__(self, snapshot, error: Exception | None = None):
        self.snapshot = snapshot
        self.error = error
        self.calls = 0
        self.release = asyncio.Event()

    async def ingest(self, source=None) -> IngestResult:
        self.calls += 1
        await self.release.wait()
        if self.error is not None:
            raise self.error
        return IngestResult(snapshot=self.snapshot, diagnostics=IngestDiagnostics())


@pytest.fixture
def fresh(snapshot):
    return snapshot.model_copy(update={"ingested_at": datetime.now(UTC)})


@pytest.fixture
def stale(snapshot):
    return snapshot.model_copy(update={"ingested_at": datetime.now(UTC) - timedelta(days=2)})


class TestIngest:
    @pytest.mark.asyncio
    async def test_real_ingest_installs_state(self, config, sample_feed_dir: Path):
        store = FeedStore(config=config)
        assert store.state is None
        assert not store.has_data()

        result = await store.ingest(sample_feed_dir)

        state = store.state
        assert state.snapshot is result.snapshot
        # the zero-coordinate stop is not indexed
        assert len(state.geo_index) == len(state.snapshot.stops) - 1
        assert store.has_data()
        assert store.last_diagnostics is result.diagnostics

    @pytest.mark.asyncio
    async def test_concurrent_ingests_share_one_run(self, config, fresh):
        ingestor = GatedIngestor(fresh)
        store = FeedStore(ingestor=ingestor, config=config)

        waiters = [asyncio.create_task(store.ingest()) for _ in range(5)]
        await asyncio.sleep(0)
        assert store.ingest_in_progress

        ingestor.release.set()
        results = await asyncio.gather(*waiters)

        assert ingestor.calls == 1
        assert all(r is results[0] for r in results)
        assert store.current_snapshot() is fresh
        assert not store.ingest_in_progress

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_snapshot(self, config, fresh, stale):
        ingestor = GatedIngestor(fresh, error=FetchError("HTTP 503"))
        store = FeedStore(ingestor=ingestor, config=config)
        store.install(stale)
        ingestor.release.set()

        with pytest.raises(FetchError):
            await store.ingest()

        assert store.current_snapshot() is stale
        assert isinstance(store.last_error, FetchError)

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_ingestion(self, config, fresh):
        ingestor = GatedIngestor(fresh)
        store = FeedStore(ingestor=ingestor, config=config)

        waiter = asyncio.create_task(store.ingest())
        await asyncio.sleep(0)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        ingestor.release.set()
        await store.wait_idle()
        assert store.current_snapshot() is fresh

    @pytest.mark.asyncio
    async def test_new_ingest_after_previous_finished(self, config, fresh):
        ingestor = GatedIngestor(fresh)
        ingestor.release.set()
        store = FeedStore(ingestor=ingestor, config=config)

        await store.ingest()
        await store.ingest()
        assert ingestor.calls == 2

    @pytest.mark.asyncio
    async def test_held_state_survives_rotation(
        self, config, sample_feed_dir: Path, tmp_path: Path, feed_writer
    ):
        """A reader's FeedState keeps its own snapshot and index after a new ingest lands."""
        store = FeedStore(config=config)
        await store.ingest(sample_feed_dir)
        held = store.state

        # route 8 now continues on to stop G
        extended = feed_writer(
            tmp_path / "gtfs-next",
            stop_times=(
                "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"
                "T8,08:00:00,08:00:00,A,1\n"
                "T8,08:12:00,08:12:00,B,2\n"
                "T8,08:30:00,08:30:00,G,3\n"
                "T2,09:00:00,09:00:00,C,1\n"
                "T2,09:10:00,09:10:00,D,2\n"
                "T13,09:15:00,09:15:00,E,1\n"
                "T13,09:40:00,09:40:00,G,2\n"
            ),
        )
        await store.ingest(extended)
        current = store.state

        assert current is not held
        assert not current.snapshot.same_content(held.snapshot)
        assert held.snapshot.routes_for_stop("G") == ("13",)
        assert current.snapshot.routes_for_stop("G") == ("13", "8")
        for state in (held, current):
            indexed = state.geo_index.nearest(21.30, -157.86, 100_000, 100)
            assert indexed
            for stop in indexed:
                assert stop == state.snapshot.get_stop(stop.stop_id)
                assert stop.route_ids == state.snapshot.routes_for_stop(stop.stop_id)

    @pytest.mark.asyncio
    async def test_writes_snapshot_cache(self, config, fresh, tmp_path: Path):
        ingestor = GatedIngestor(fresh)
        ingestor.release.set()
        cache_path = tmp_path / "snapshot.json"
        store = FeedStore(ingestor=ingestor, config=config, cache_path=cache_path)

        await store.ingest()
        assert cache_path.exists()


class TestRefresh:
    @pytest.mark.asyncio
    async def test_stale_serves_old_snapshot_while_refreshing(self, config, fresh, stale):
        ingestor = GatedIngestor(fresh)
        store = FeedStore(ingestor=ingestor, config=config)
        store.install(stale)
        assert store.is_stale()

        served = await store.refresh()
        assert served is stale
        assert store.ingest_in_progress

        ingestor.release.set()
        await store.wait_idle()
        assert store.current_snapshot() is fresh
        assert not store.is_stale()

    @pytest.mark.asyncio
    async def test_fresh_snapshot_not_reingested(self, config, fresh):
        ingestor = GatedIngestor(fresh)
        store = FeedStore(ingestor=ingestor, config=config)
        store.install(fresh)

        assert await store.refresh() is fresh
        assert ingestor.calls == 0
        assert not store.ingest_in_progress

    @pytest.mark.asyncio
    async def test_force(self, config, fresh):
        ingestor = GatedIngestor(fresh)
        ingestor.release.set()
        store = FeedStore(ingestor=ingestor, config=config)
        store.install(fresh)

        await store.refresh(force=True)
        await store.wait_idle()
        assert ingestor.calls == 1

    @pytest.mark.asyncio
    async def test_background_failure_recorded(self, config, fresh, stale):
        ingestor = GatedIngestor(fresh, error=FetchError("offline"))
        ingestor.release.set()
        store = FeedStore(ingestor=ingestor, config=config)
        store.install(stale)

        await store.refresh()
        await store.wait_idle()
        await asyncio.sleep(0)

        assert store.current_snapshot() is stale
        assert isinstance(store.last_error, FetchError)


class TestLoadCached:
    @pytest.mark.asyncio
    async def test_installs_fresh_cache(self, config, fresh, tmp_path: Path):
        path = tmp_path / "snapshot.json"
        save_snapshot(fresh, path)
        store = FeedStore(ingestor=GatedIngestor(fresh), config=config, cache_path=path)

        assert await store.load_cached()
        assert store.current_snapshot().same_content(fresh)
        assert store.state.geo_index is not None

    @pytest.mark.asyncio
    async def test_ignores_stale_cache(self, config, stale, tmp_path: Path):
        path = tmp_path / "snapshot.json"
        save_snapshot(stale, path)
        store = FeedStore(ingestor=GatedIngestor(stale), config=config, cache_path=path)

        assert not await store.load_cached()
        assert store.state is None

    @pytest.mark.asyncio
    async def test_ignores_corrupt_cache(self, config, fresh, tmp_path: Path):
        path = tmp_path / "snapshot.json"
        path.write_text("{not json")
        store = FeedStore(ingestor=GatedIngestor(fresh), config=config, cache_path=path)

        assert not await store.load_cached()

    @pytest.mark.asyncio
    async def test_no_cache_path(self, config, fresh):
        store = FeedStore(ingestor=GatedIngestor(fresh), config=config)
        assert not await store.load_cached()

    @pytest.mark.asyncio
    async def test_naive_cache_timestamp_compared_with_installed(
        self, config, sample_feed_dir: Path, tmp_path: Path
    ):
        store = FeedStore(config=config)
        await store.ingest(sample_feed_dir)
        installed = store.state
        path = tmp_path / "snapshot.json"
        save_snapshot(store.current_snapshot(), path)
        document = json.loads(path.read_text())
        an_hour_ago = datetime.now(UTC) - timedelta(hours=1)
        document["timestamp"] = an_hour_ago.replace(tzinfo=None).isoformat()
        path.write_text(json.dumps(document))

        # older than what is already served, so it is not installed
        assert not await store.load_cached(path)
        assert store.state is installed
