"""Directory tree snapshots for Dir Mirror.

A snapshot records every file and every sub-folder beneath a root as
paths relative to that root. Relative paths are the identity keys used
to match entries between the source and destination trees.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    """Relative file and directory paths captured for one root."""
    root: str
    files: frozenset[str]
    dirs: frozenset[str]

    def __len__(self) -> int:
        return len(self.files) + len(self.dirs)


def _raise_walk_error(exc: OSError) -> None:
    # os.walk swallows errors unless told otherwise; a failed walk aborts the pass
    raise exc


def take_snapshot(root: str | Path) -> Snapshot:
    """
    Walk *root* recursively and return its relative-path snapshot.

    Symbolic links to directories are listed as directories but not
    descended into. Any error raised by the walk propagates to the caller.
    """
    base = os.path.abspath(os.fspath(root))
    files: set[str] = set()
    dirs: set[str] = set()

    for dirpath, dirnames, filenames in os.walk(base, onerror=_raise_walk_error):
        rel_dir = os.path.relpath(dirpath, base)
        prefix = "" if rel_dir == os.curdir else rel_dir
        for name in dirnames:
            dirs.add(os.path.join(prefix, name))
        for name in filenames:
            files.add(os.path.join(prefix, name))

    logger.debug("Snapshot of %s: %d files, %d dirs", base, len(files), len(dirs))
    return Snapshot(root=base, files=frozenset(files), dirs=frozenset(dirs))
