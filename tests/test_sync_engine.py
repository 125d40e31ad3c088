"""Tests for the sync engine."""

import os
import sys
from unittest.mock import MagicMock, Mock, patch

import pytest

from blobmirror.config import MirrorConfig
from blobmirror.exceptions import ConfigError, StorageConnectionError
from blobmirror.paths import PathCodec
from blobmirror.storage import InMemoryStorage
from blobmirror.sync import ChangeEvent, ChangeKind, SyncEngine, SyncStats, run

ACCOUNT_KEY = "c2VjcmV0LWtleQ=="


@pytest.fixture
def root(tmp_path):
    bucket = tmp_path / "bucket"
    bucket.mkdir()
    return bucket


class TestChangeEvent:
    """Tests for ChangeEvent."""

    @pytest.mark.parametrize(
        "kind,expected",
        [
            (ChangeKind.CREATED, "create"),
            (ChangeKind.REMOVED, "remove"),
            (ChangeKind.WRITTEN, "update"),
            (ChangeKind.OTHER, None),
        ],
    )
    def test_handler_name(self, kind, expected):
        assert ChangeEvent(kind, "/bucket/a.txt").handler_name == expected

    def test_is_immutable(self):
        event = ChangeEvent(ChangeKind.CREATED, "/bucket/a.txt")
        with pytest.raises(AttributeError):
            event.path = "/bucket/b.txt"


class TestSyncEngine:
    """Test SyncEngine functionality."""

    @pytest.fixture
    def memory(self):
        return InMemoryStorage()

    @pytest.fixture
    def engine(self, memory, root):
        return SyncEngine(memory, PathCodec(root))

    def test_create_sync_engine(self, memory, root):
        engine = SyncEngine(memory, PathCodec(root))
        assert engine.storage is memory
        assert engine.files is not None
        assert sorted(engine.registry.names) == ["create", "remove", "update"]
        assert engine.stats == SyncStats()

    @pytest.mark.parametrize(
        "kind,name",
        [
            (ChangeKind.CREATED, "create"),
            (ChangeKind.REMOVED, "remove"),
            (ChangeKind.WRITTEN, "update"),
        ],
    )
    def test_route_event(self, engine, kind, name):
        with patch.object(engine, "dispatch") as mock_dispatch:
            assert engine.route_event(ChangeEvent(kind, "/x/a.txt")) is True
        mock_dispatch.assert_called_once_with(name, "/x/a.txt")

    def test_route_other_event_is_ignored(self, engine):
        with patch.object(engine, "dispatch") as mock_dispatch:
            assert engine.route_event(ChangeEvent(ChangeKind.OTHER, "/x")) is False
        mock_dispatch.assert_not_called()

    def test_run_processes_events_in_order(self, engine, memory, root):
        path = root / "file.txt"
        path.write_bytes(b"v1")
        events = [
            ChangeEvent(ChangeKind.CREATED, str(path)),
            ChangeEvent(ChangeKind.OTHER, str(path)),
            ChangeEvent(ChangeKind.REMOVED, str(path)),
            ChangeEvent(ChangeKind.CREATED, str(path)),
        ]

        stats = engine.run(events)

        assert stats == SyncStats(events=4, dispatched=3, ignored=1, failures=0)
        assert memory.get("file.txt") == b"v1"

    def test_run_continues_after_failure(self, engine, memory, root, caplog):
        (root / "good.txt").write_bytes(b"ok")
        events = [
            ChangeEvent(ChangeKind.CREATED, str(root / "missing.txt")),
            ChangeEvent(ChangeKind.CREATED, str(root / "good.txt")),
        ]

        stats = engine.run(events)

        assert stats.failures == 1
        assert stats.dispatched == 1
        assert memory.names == ["good.txt"]
        assert "Failed to sync" in caplog.text

    def test_run_counts_upload_failures(self, root):
        storage = Mock()
        storage.put.side_effect = StorageConnectionError("Network error: down")
        (root / "a.txt").write_bytes(b"a")
        engine = SyncEngine(storage, PathCodec(root))

        stats = engine.run([ChangeEvent(ChangeKind.WRITTEN, str(root / "a.txt"))])

        assert stats.failures == 1
        assert storage.put.call_count == 1

    def test_run_with_empty_stream(self, engine):
        assert engine.run(iter([])) == SyncStats()

    def test_run_does_not_swallow_programming_errors(self, root):
        storage = Mock()
        storage.put.side_effect = TypeError("bad call")
        (root / "a.txt").write_bytes(b"a")
        engine = SyncEngine(storage, PathCodec(root))

        with pytest.raises(TypeError):
            engine.run([ChangeEvent(ChangeKind.CREATED, str(root / "a.txt"))])

    @pytest.mark.skipif(os.name != "posix", reason="POSIX file names")
    def test_undecodable_removal_does_not_stop_the_loop(self, engine, memory, root):
        """Test a removed file whose name was not valid UTF-8."""
        (root / "ok.txt").write_bytes(b"ok")
        removed = os.path.join(str(root), os.fsdecode(b"caf\xe9.txt"))
        memory.put("caf%E9.txt", b"old")
        events = [
            ChangeEvent(ChangeKind.REMOVED, removed),
            ChangeEvent(ChangeKind.CREATED, str(root / "ok.txt")),
        ]

        stats = engine.run(events)

        assert stats == SyncStats(events=2, dispatched=2, ignored=0, failures=0)
        assert memory.names == ["ok.txt"]

    @pytest.mark.skipif(
        not sys.platform.startswith("linux"), reason="needs non-UTF-8 file names"
    )
    def test_undecodable_file_is_uploaded(self, engine, memory, root):
        path = os.path.join(os.fsencode(str(root)), b"caf\xe9.txt")
        with open(path, "wb") as f:
            f.write(b"data")

        stats = engine.run([ChangeEvent(ChangeKind.CREATED, os.fsdecode(path))])

        assert stats.failures == 0
        assert memory.get("caf%E9.txt") == b"data"


class TestRun:
    """Tests for the run() entry point."""

    def make_config(self, root_folder):
        return MirrorConfig(
            root_folder=str(root_folder),
            storage_account="acct",
            account_key=ACCOUNT_KEY,
            container_name="container",
            debounce_seconds=2.0,
        )

    def test_missing_root(self, tmp_path):
        with pytest.raises(ConfigError, match="does not exist"):
            run(self.make_config(tmp_path / "missing"))

    def test_root_is_a_file(self, tmp_path):
        file_path = tmp_path / "file.txt"
        file_path.write_text("x")
        with pytest.raises(ConfigError, match="not a directory"):
            run(self.make_config(file_path))

    def test_run_consumes_watch_events(self, root):
        (root / "a.txt").write_bytes(b"a")
        memory = InMemoryStorage()
        events = [
            ChangeEvent(ChangeKind.CREATED, str(root.resolve() / "a.txt")),
            ChangeEvent(ChangeKind.OTHER, str(root.resolve())),
        ]

        with patch("blobmirror.sync.engine.AzureBlobClient") as mock_client_class, patch(
            "blobmirror.sync.engine.WatchAdapter"
        ) as mock_watch_class:
            mock_client_class.return_value = MagicMock()
            mock_client_class.return_value.__enter__.return_value = memory
            mock_watch = mock_watch_class.return_value
            mock_watch.events.return_value = iter(events)

            stats = run(self.make_config(root))

        assert stats == SyncStats(events=2, dispatched=1, ignored=1, failures=0)
        assert memory.names == ["a.txt"]
        mock_client_class.assert_called_once_with(
            account_name="acct",
            account_key=ACCOUNT_KEY,
            container_name="container",
            endpoint=None,
        )
        mock_watch_class.assert_called_once_with(root.resolve(), debounce_seconds=2.0)
        mock_watch.start.assert_called_once()
        mock_watch.stop.assert_called_once()

    def test_run_stops_watching_on_interrupt(self, root):
        def interrupted():
            raise KeyboardInterrupt
            yield  # pragma: no cover

        with patch("blobmirror.sync.engine.AzureBlobClient") as mock_client_class, patch(
            "blobmirror.sync.engine.WatchAdapter"
        ) as mock_watch_class:
            mock_client_class.return_value = MagicMock()
            mock_client_class.return_value.__enter__.return_value = InMemoryStorage()
            mock_watch = mock_watch_class.return_value
            mock_watch.events.return_value = interrupted()

            stats = run(self.make_config(root))

        assert stats.events == 0
        mock_watch.stop.assert_called_once()
