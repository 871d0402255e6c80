"""Tests for the health tool and the oahu-transit CLI."""

from datetime import datetime
from pathlib import Path
from unittest.mock import patch

import pytest

from oahu_transit import __version__
from oahu_transit.data.feed_store import FeedStore
from oahu_transit.data.snapshot_cache import load_snapshot
from oahu_transit.errors import FetchError
from oahu_transit.server import health, main
from oahu_transit.services import feed_service


@pytest.fixture(autouse=True)
def reset_services():
    feed_service.reset_service()
    yield
    feed_service.reset_service()


class TestHealth:
    def test_reports_version_without_feed(self, config):
        feed_service._config = config
        response = health()

        assert response.status == "ok"
        assert response.version == __version__
        assert response.feed_loaded is False
        assert response.feed_version is None
        assert datetime.fromisoformat(response.timestamp).tzinfo is not None

    def test_reports_loaded_feed(self, config, snapshot):
        store = FeedStore(config=config)
        store.install(snapshot)
        feed_service._config = config
        feed_service._store = store

        response = health()
        assert response.feed_loaded is True
        assert response.feed_version == snapshot.feed_version


class TestCli:
    def test_ingest_writes_snapshot(self, sample_feed_dir: Path, tmp_path: Path, capsys):
        snapshot_path = tmp_path / "cache" / "snapshot.json"
        argv = ["oahu-transit", "ingest", str(sample_feed_dir), "--snapshot", str(snapshot_path)]

        with patch("sys.argv", argv):
            main()

        restored = load_snapshot(snapshot_path)
        assert restored is not None
        assert restored.routes_for_stop("A") == ("8",)
        output = capsys.readouterr().out
        assert "Ingestion complete (2026-10-01)" in output
        assert "zero_coordinate_stops" in output

    def test_ingest_failure_propagates(self, tmp_path: Path):
        missing = tmp_path / "missing.zip"
        argv = ["oahu-transit", "ingest", str(missing), "--snapshot", str(tmp_path / "out.json")]

        with patch("sys.argv", argv), pytest.raises(FetchError, match="missing.zip"):
            main()
        assert not (tmp_path / "out.json").exists()

    @pytest.mark.parametrize("argv", [["oahu-transit"], ["oahu-transit", "serve"]])
    def test_serve_is_default(self, argv):
        with patch("sys.argv", argv), patch("oahu_transit.server.mcp.run") as mock_run:
            main()
        mock_run.assert_called_once_with()
