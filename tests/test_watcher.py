"""Tests for the source folder watcher."""

import threading

import pytest
from watchdog.events import FileCreatedEvent, FileModifiedEvent

from dirmirror.watcher import ChangeHandler, SourceWatcher, _SettleTracker


class TestSettleTracker:
    def test_nothing_pending(self):
        calls = []
        tracker = _SettleTracker(0, lambda: calls.append(1))
        assert tracker.check() is False
        assert calls == []

    def test_waits_for_quiet_period(self):
        calls = []
        tracker = _SettleTracker(60, lambda: calls.append(1))
        tracker.touch()
        assert tracker.pending
        assert tracker.check() is False
        assert calls == []

    def test_fires_once_after_settling(self):
        calls = []
        tracker = _SettleTracker(0, lambda: calls.append(1))
        tracker.touch()
        tracker.touch()
        assert tracker.check() is True
        assert tracker.check() is False
        assert calls == [1]
        assert not tracker.pending

    def test_callback_error_is_contained(self):
        def boom():
            raise RuntimeError("boom")

        tracker = _SettleTracker(0, boom)
        tracker.touch()
        assert tracker.check() is True

    def test_poll_thread_fires_callback(self):
        fired = threading.Event()
        tracker = _SettleTracker(0, fired.set, poll_seconds=0.01)
        tracker.start()
        try:
            tracker.touch()
            assert fired.wait(timeout=5)
        finally:
            tracker.stop()


class TestChangeHandler:
    def test_events_touch_tracker(self):
        calls = []
        tracker = _SettleTracker(0, lambda: calls.append(1))
        handler = ChangeHandler(tracker)
        handler.dispatch(FileCreatedEvent("/src/new.txt"))
        handler.dispatch(FileModifiedEvent("/src/new.txt"))
        assert tracker.pending
        tracker.check()
        assert calls == [1]


class TestSourceWatcher:
    def test_missing_folder_raises(self, tmp_path):
        watcher = SourceWatcher(str(tmp_path / "nope"), lambda: None)
        with pytest.raises(FileNotFoundError):
            watcher.start()
        assert not watcher.is_running
