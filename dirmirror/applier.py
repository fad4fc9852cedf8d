"""
Plan execution for Dir Mirror.

Applies a DiffPlan to the destination tree in three phases:

1. create: missing folders, then missing files (parent folders made on demand)
2. delete: obsolete files, then obsolete folders deepest first
3. update: common files the equality check reports as different

Every operation is isolated: a failure is logged with the relative path
and recorded, and the phase moves on to the next item. Copies replace
the whole destination file with the source bytes. Optional SHA-256
verification and a worker pool for copy phases are supported.
"""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
import threading
import time
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from dirmirror.compare import FilePair, files_identical
from dirmirror.config import COMPARE_ALIGNED
from dirmirror.diff import DiffPlan

logger = logging.getLogger(__name__)

_HASH_CHUNK = 256 * 1024  # 256 KiB read chunks for hashing

# Operation names used in OpRecord.action
ACTION_CREATE_DIR = "create_dir"
ACTION_CREATE = "create"
ACTION_DELETE = "delete"
ACTION_DELETE_DIR = "delete_dir"
ACTION_UPDATE = "update"
ACTION_UNCHANGED = "unchanged"


def _sha256(filepath: Path) -> str:
    """Return the hex SHA-256 digest of *filepath*."""
    h = hashlib.sha256()
    with open(filepath, "rb") as fh:
        while chunk := fh.read(_HASH_CHUNK):
            h.update(chunk)
    return h.hexdigest()


@dataclass
class OpRecord:
    """Record of a single applier operation."""
    action: str
    relative_path: str
    size_bytes: int = 0
    started: float = 0.0
    finished: float = 0.0
    success: bool = False
    verified: bool = False
    error: str = ""


_COUNTERS = {
    ACTION_CREATE_DIR: "dirs_created",
    ACTION_CREATE: "files_created",
    ACTION_DELETE: "files_deleted",
    ACTION_DELETE_DIR: "dirs_deleted",
    ACTION_UPDATE: "files_updated",
    ACTION_UNCHANGED: "files_unchanged",
}


@dataclass
class PassStats:
    """Aggregated outcome of one pass."""
    dirs_created: int = 0
    files_created: int = 0
    files_deleted: int = 0
    dirs_deleted: int = 0
    files_updated: int = 0
    files_unchanged: int = 0
    failed: int = 0
    bytes_copied: int = 0
    history: list[OpRecord] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record(self, rec: OpRecord) -> None:
        with self._lock:
            self.history.append(rec)
            if not rec.success:
                self.failed += 1
            else:
                counter = _COUNTERS[rec.action]
                setattr(self, counter, getattr(self, counter) + 1)
                if rec.action in (ACTION_CREATE, ACTION_UPDATE):
                    self.bytes_copied += rec.size_bytes
            # Keep last 1000 records
            if len(self.history) > 1000:
                self.history = self.history[-1000:]

    @property
    def changes(self) -> int:
        """Number of successful filesystem modifications."""
        return (
            self.dirs_created + self.files_created + self.files_deleted
            + self.dirs_deleted + self.files_updated
        )

    def failures(self) -> list[OpRecord]:
        with self._lock:
            return [r for r in self.history if not r.success]

    def summary(self) -> str:
        return (
            f"+{self.files_created} files, +{self.dirs_created} dirs, "
            f"~{self.files_updated} updated, -{self.files_deleted} files, "
            f"-{self.dirs_deleted} dirs, ok:{self.files_unchanged}, "
            f"failed:{self.failed}"
        )


class SyncApplier:
    """
    Executes a DiffPlan against the destination tree.

    Parameters
    ----------
    source_root : str
        The root of the tree being mirrored.
    destination_root : str
        The root of the replica.
    compare_mode : str
        Equality mode passed to ``files_identical`` ('aligned' or 'strict').
    verify : bool
        If True, compare SHA-256 checksums of source and destination after copy.
    workers : int
        Number of threads for the create and update phases (1 = sequential).
    on_record : callable, optional
        Callback invoked after each operation with its OpRecord.
    """

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
        self._compare_mode = compare_mode
        self._verify = verify
        self._workers = max(1, int(workers))
        self._on_record = on_record

    # ---- public API ----

    def apply(self, plan: DiffPlan) -> PassStats:
        """Run the create, delete and update phases and return their stats."""
        stats = PassStats()
        self.create_phase(plan, stats)
        self.delete_phase(plan, stats)
        self.update_phase(plan, stats)
        return stats

    def create_phase(self, plan: DiffPlan, stats: PassStats) -> None:
        for rel in plan.dirs_to_create:
            self._finish(stats, self._create_dir(rel))
        self._run_each(sorted(plan.files_to_copy), self._create_file, ACTION_CREATE, stats)

    def delete_phase(self, plan: DiffPlan, stats: PassStats) -> None:
        for rel in sorted(plan.files_to_delete):
            self._finish(stats, self._delete_file(rel))
        # Order matters here: plan.dirs_to_delete is deepest first
        for rel in plan.dirs_to_delete:
            self._finish(stats, self._delete_dir(rel))

    def update_phase(self, plan: DiffPlan, stats: PassStats) -> None:
        self._run_each(sorted(plan.common_files), self._update_file, ACTION_UPDATE, stats)

    # ---- phase plumbing ----

    def _run_each(
        self,
        items: Iterable[str],
        operation: Callable[[str], OpRecord],
        action: str,
        stats: PassStats,
    ) -> None:
        if self._workers == 1:
            for rel in items:
                self._finish(stats, self._guarded(operation, action, rel))
            return
        with ThreadPoolExecutor(
            max_workers=self._workers, thread_name_prefix="MirrorCopy"
        ) as pool:
            for rec in pool.map(lambda rel: self._guarded(operation, action, rel), items):
                self._finish(stats, rec)

    def _guarded(
        self, operation: Callable[[str], OpRecord], action: str, rel: str
    ) -> OpRecord:
        try:
            return operation(rel)
        except Exception as exc:
            logger.exception("Unexpected error processing %s", rel)
            return OpRecord(
                action=action,
                relative_path=rel,
                finished=time.time(),
                error=str(exc),
            )

    def _finish(self, stats: PassStats, rec: OpRecord) -> None:
        stats.record(rec)
        if self._on_record:
            try:
                self._on_record(rec)
            except Exception:
                logger.exception("Error in on_record callback")

    # ---- individual operations ----

    def _create_dir(self, rel: str) -> OpRecord:
        rec = OpRecord(action=ACTION_CREATE_DIR, relative_path=rel, started=time.time())
        try:
            (self.destination_root / rel).mkdir(parents=True, exist_ok=True)
            rec.success = True
            logger.info("Directory created in destination folder: %s", rel)
        except OSError as exc:
            rec.error = str(exc)
            logger.error("Error creating directory %s: %s", rel, exc)
        rec.finished = time.time()
        return rec

    def _create_file(self, rel: str) -> OpRecord:
        rec = OpRecord(action=ACTION_CREATE, relative_path=rel, started=time.time())
        source = self.source_root / rel
        dest = self.destination_root / rel
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            self._copy(source, dest, rec)
            if rec.success:
                logger.info("File copied from source: %s (%d bytes)", rel, rec.size_bytes)
        except OSError as exc:
            rec.error = str(exc)
            logger.error("Error copying file from source %s: %s", rel, exc)
        rec.finished = time.time()
        return rec

    def _delete_file(self, rel: str) -> OpRecord:
        rec = OpRecord(action=ACTION_DELETE, relative_path=rel, started=time.time())
        try:
            (self.destination_root / rel).unlink()
            rec.success = True
            logger.info("File deleted from destination folder: %s", rel)
        except OSError as exc:
            rec.error = str(exc)
            logger.error("Error deleting file from destination folder %s: %s", rel, exc)
        rec.finished = time.time()
        return rec

    def _delete_dir(self, rel: str) -> OpRecord:
        rec = OpRecord(action=ACTION_DELETE_DIR, relative_path=rel, started=time.time())
        target = self.destination_root / rel
        try:
            if target.is_symlink():
                target.unlink()
            else:
                shutil.rmtree(target)
            rec.success = True
            logger.info("Deleted directory from destination folder: %s", rel)
        except OSError as exc:
            rec.error = str(exc)
            logger.error(
                "Error deleting directory from destination folder %s: %s", rel, exc
            )
        rec.finished = time.time()
        return rec

    def _update_file(self, rel: str) -> OpRecord:
        rec = OpRecord(action=ACTION_UPDATE, relative_path=rel, started=time.time())
        try:
            pair = FilePair.resolve(rel, self.source_root, self.destination_root)
        except FileNotFoundError as exc:
            rec.error = str(exc)
            rec.finished = time.time()
            logger.error("Cannot update %s: %s", rel, exc)
            return rec
        except OSError as exc:
            rec.error = str(exc)
            rec.finished = time.time()
            logger.error("Error reading metadata for %s: %s", rel, exc)
            return rec

        try:
            if files_identical(pair, self._compare_mode):
                rec.action = ACTION_UNCHANGED
                rec.success = True
                rec.size_bytes = pair.source_size
                logger.debug("Unchanged: %s", rel)
            else:
                self._copy(pair.source, pair.destination, rec)
                if rec.success:
                    logger.info("File updated in destination folder: %s", rel)
        except OSError as exc:
            rec.error = str(exc)
            logger.error("Error updating file %s: %s", rel, exc)
        rec.finished = time.time()
        return rec

    def _copy(self, source: Path, dest: Path, rec: OpRecord) -> None:
        """Replace *dest* with the bytes of *source* and check the result."""
        rec.size_bytes = source.stat().st_size
        shutil.copyfile(source, dest)

        if self._verify:
            src_hash = _sha256(source)
            dst_hash = _sha256(dest)
            if src_hash == dst_hash:
                rec.verified = True
                rec.success = True
            else:
                rec.error = (
                    f"Verification failed: SHA-256 mismatch "
                    f"(src={src_hash[:12]}… dst={dst_hash[:12]}…)"
                )
                logger.error("Checksum mismatch for %s", rec.relative_path)
        elif os.path.getsize(dest) == rec.size_bytes:
            rec.success = True
        else:
            rec.error = "Post-copy size mismatch"
            logger.error("Size mismatch after copying %s", rec.relative_path)
