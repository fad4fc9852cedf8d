"""Periodic pass scheduling for Dir Mirror.

Runs one pass as soon as the scheduler starts, then one pass per
interval on a fixed monotonic cadence until stopped. At most one pass
is active at any instant: a trigger that arrives while a pass is in
flight is skipped, and ticks missed by a long pass are dropped rather
than queued.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable
from pathlib import Path

from dirmirror.engine import MirrorEngine, ensure_dir

logger = logging.getLogger(__name__)

STATE_IDLE = "idle"
STATE_RUNNING = "running"
STATE_STOPPED = "stopped"


class SyncScheduler:
    """
    Drives repeated calls of *run_pass* on a fixed interval.

    Usage:
        scheduler = SyncScheduler.for_engine(engine, interval_seconds=60)
        scheduler.start()
        ...
        scheduler.stop()
    """

    def __init__(
        self,
        run_pass: Callable[[], object],
        interval_seconds: float,
        roots: Iterable[str | Path] = (),
    ):
        if not interval_seconds > 0:
            raise ValueError(f"Interval must be positive, got {interval_seconds!r}")
        for root in roots:
            ensure_dir(Path(root), "Sync folder")

        self._run_pass = run_pass
        self._interval = float(interval_seconds)
        self._pass_lock = threading.Lock()
        self._wake = threading.Event()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._state = STATE_IDLE
        self.passes_run = 0
        self.passes_failed = 0
        self.passes_skipped = 0

    @classmethod
    def for_engine(cls, engine: MirrorEngine, interval_seconds: float) -> SyncScheduler:
        """Build a scheduler that runs *engine* passes over its two roots."""
        return cls(
            engine.run_pass,
            interval_seconds,
            roots=(engine.source_root, engine.destination_root),
        )

    # ---- lifecycle ----

    def start(self) -> None:
        """Start the loop thread; the first pass runs immediately."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._wake.clear()
        self._thread = threading.Thread(
            target=self._loop, daemon=True, name="SyncScheduler"
        )
        self._thread.start()
        logger.info("Scheduler started (interval=%ss).", self._interval)

    def stop(self, timeout: float | None = None) -> None:
        """Stop the loop, letting an in-flight pass finish first."""
        self._stop.set()
        self._wake.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        self._state = STATE_STOPPED
        logger.info("Scheduler stopped.")

    def run_forever(self) -> None:
        """Start the loop and block until ``stop`` is called from elsewhere."""
        self.start()
        while not self._stop.wait(timeout=1):
            pass

    # ---- triggering ----

    def request_pass(self) -> None:
        """Ask the loop for an extra pass now; the regular cadence is unchanged."""
        self._wake.set()

    def trigger(self) -> bool:
        """
        Run one pass on the calling thread unless another is in flight.

        Returns False when the pass was skipped.
        """
        if not self._pass_lock.acquire(blocking=False):
            self.passes_skipped += 1
            logger.debug("Pass already running; trigger skipped.")
            return False
        try:
            self._state = STATE_RUNNING
            self._run_pass()
            self.passes_run += 1
        except Exception:
            self.passes_failed += 1
            logger.exception("Synchronisation pass failed; retrying at the next interval.")
        finally:
            self._state = STATE_STOPPED if self._stop.is_set() else STATE_IDLE
            self._pass_lock.release()
            logger.info(
                "File synchronisation done. Awaiting the next synchronisation interval..."
            )
        return True

    # ---- status ----

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def state(self) -> str:
        return self._state

    @property
    def is_running(self) -> bool:
        """Return whether the loop thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    # ---- internals ----

    def _loop(self) -> None:
        next_tick = time.monotonic()
        while not self._stop.is_set():
            self.trigger()

            next_tick += self._interval
            now = time.monotonic()
            if next_tick <= now:
                missed = int((now - next_tick) // self._interval) + 1
                next_tick += missed * self._interval
                logger.warning("Pass overran the interval; skipped %d tick(s).", missed)

            self._wait_until(next_tick)

    def _wait_until(self, deadline: float) -> None:
        """Sleep until *deadline*, serving extra pass requests meanwhile."""
        while not self._stop.is_set():
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return
            if self._wake.wait(timeout=remaining):
                self._wake.clear()
                if self._stop.is_set():
                    return
                logger.info("Change detected; running an early pass.")
                self.trigger()
