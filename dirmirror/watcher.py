"""Source folder watcher for Dir Mirror.

Uses the watchdog library to notice changes under the source folder and
ask the scheduler for an early pass once the changes have settled.
The periodic pass keeps running either way; watching only cuts latency.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)


class _SettleTracker:
    """Fires *on_settled* once no change has been seen for a given duration."""

    def __init__(
        self,
        settle_seconds: float,
        on_settled: Callable[[], None],
        poll_seconds: float = 0.5,
    ):
        self._settle_seconds = max(0.0, settle_seconds)
        self._on_settled = on_settled
        self._poll_seconds = poll_seconds
        self._last_change: float | None = None
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._poll, daemon=True, name="SettleTracker"
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None

    def touch(self) -> None:
        """Record that a change just happened."""
        with self._lock:
            self._last_change = time.monotonic()

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._last_change is not None

    def check(self) -> bool:
        """Fire the callback if the last change has settled.  Returns True if fired."""
        with self._lock:
            if self._last_change is None:
                return False
            if time.monotonic() - self._last_change < self._settle_seconds:
                return False
            self._last_change = None
        try:
            self._on_settled()
        except Exception:
            logger.exception("Error in on_settled callback")
        return True

    def _poll(self) -> None:
        while not self._stop.is_set():
            self.check()
            self._stop.wait(timeout=self._poll_seconds)


class ChangeHandler(FileSystemEventHandler):
    """Watchdog handler that feeds every source change into the settle tracker."""

    def __init__(self, tracker: _SettleTracker):
        super().__init__()
        self._tracker = tracker

    def on_any_event(self, event: FileSystemEvent) -> None:
        # Opening or reading a file does not change the tree
        if event.event_type in ("opened", "closed_no_write"):
            return
        logger.debug("Source change: %s %s", event.event_type, event.src_path)
        self._tracker.touch()


class SourceWatcher:
    """High-level watcher that combines watchdog + settle tracking.

    Usage:
        watcher = SourceWatcher(source, scheduler.request_pass, settle_seconds=2)
        watcher.start()
        ...
        watcher.stop()
    """

    def __init__(
        self,
        source_folder: str,
        on_change: Callable[[], None],
        settle_seconds: float = 2.0,
    ):
        self.source_folder = source_folder
        self._tracker = _SettleTracker(settle_seconds, on_change)
        self._handler = ChangeHandler(self._tracker)
        self._observer: Any | None = None

    # ---- lifecycle ----

    def start(self) -> None:
        """Start watching the source folder."""
        if not os.path.isdir(self.source_folder):
            logger.error("Source folder does not exist: %s", self.source_folder)
            raise FileNotFoundError(
                f"Source folder does not exist: {self.source_folder}"
            )

        observer = Observer()
        self._observer = observer
        observer.schedule(self._handler, self.source_folder, recursive=True)
        observer.start()
        self._tracker.start()
        logger.info("Watching '%s' for changes.", self.source_folder)

    def stop(self) -> None:
        """Stop watching and release resources."""
        if self._observer:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
        self._tracker.stop()
        logger.info("Watcher stopped.")

    @property
    def is_running(self) -> bool:
        """Return whether the watcher is currently active."""
        return self._observer is not None and self._observer.is_alive()

    @property
    def pending(self) -> bool:
        """Return whether a change is waiting to settle."""
        return self._tracker.pending
