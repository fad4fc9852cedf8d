"""One synchronisation pass for Dir Mirror.

A pass re-validates both roots, snapshots them, computes the plan and
applies it. Nothing is cached between passes.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from pathlib import Path

from dirmirror.applier import OpRecord, PassStats, SyncApplier
from dirmirror.catalog import take_snapshot
from dirmirror.config import COMPARE_ALIGNED, SyncSettings
from dirmirror.diff import DiffPlan, compute_diff

logger = logging.getLogger(__name__)


def ensure_dir(path: Path, name: str) -> bool:
    """Create *path* if it is missing.  Returns True when it had to be created."""
    if path.is_dir():
        return False
    path.mkdir(parents=True, exist_ok=True)
    logger.warning("%s %s could not be found. Directory created.", name, path)
    return True


class MirrorEngine:
    """Runs passes that make *destination_root* a replica of *source_root*."""

    def __init__(
        self,
        source_root: str | Path,
        destination_root: str | Path,
        compare_mode: str = COMPARE_ALIGNED,
        verify: bool = False,
        workers: int = 1,
        on_record: Callable[[OpRecord], None] | None = None,
    ):
        self.source_root = Path(source_root)
        self.destination_root = Path(destination_root)
        self.applier = SyncApplier(
            self.source_root,
            self.destination_root,
            compare_mode=compare_mode,
            verify=verify,
            workers=workers,
            on_record=on_record,
        )
        self.passes_completed = 0
        self.last_stats: PassStats | None = None

    @classmethod
    def from_settings(
        cls,
        settings: SyncSettings,
        on_record: Callable[[OpRecord], None] | None = None,
    ) -> MirrorEngine:
        return cls(
            settings.source,
            settings.destination,
            compare_mode=settings.compare_mode,
            verify=settings.verify_copies,
            workers=settings.copy_workers,
            on_record=on_record,
        )

    def ensure_roots(self) -> None:
        """Recreate either root if it was removed."""
        ensure_dir(self.source_root, "Source folder")
        ensure_dir(self.destination_root, "Destination folder")

    def plan(self) -> DiffPlan:
        """Snapshot both trees and return the plan for them."""
        source = take_snapshot(self.source_root)
        destination = take_snapshot(self.destination_root)
        return compute_diff(source, destination)

    def run_pass(self) -> PassStats:
        """
        Run one full pass.

        Per-item failures are recorded in the returned stats. Errors from
        root validation or the tree walk propagate to the caller.
        """
        started = time.monotonic()
        self.ensure_roots()
        plan = self.plan()
        logger.debug(
            "Plan: %d to copy, %d to delete, %d dirs to delete, %d common",
            len(plan.files_to_copy),
            len(plan.files_to_delete),
            len(plan.dirs_to_delete),
            len(plan.common_files),
        )
        stats = self.applier.apply(plan)
        self.passes_completed += 1
        self.last_stats = stats
        logger.info(
            "Pass %d finished in %.2fs: %s",
            self.passes_completed, time.monotonic() - started, stats.summary(),
        )
        return stats
