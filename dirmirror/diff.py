"""Tree difference computation for Dir Mirror."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dirmirror.catalog import Snapshot


def _depth(rel_path: str) -> int:
    return rel_path.count(os.sep) + 1


@dataclass(frozen=True)
class DiffPlan:
    """
    What one pass has to do to turn the destination into a replica.

    ``dirs_to_delete`` is ordered longest path first so children are
    removed before their parents. ``dirs_to_create`` is ordered
    shallowest first so parents exist before their children.
    """
    files_to_copy: frozenset[str]
    files_to_delete: frozenset[str]
    dirs_to_delete: tuple[str, ...]
    common_files: frozenset[str]
    dirs_to_create: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        """True when nothing needs creating or deleting (updates not known yet)."""
        return not (
            self.files_to_copy
            or self.files_to_delete
            or self.dirs_to_delete
            or self.dirs_to_create
        )


def compute_diff(source: Snapshot, destination: Snapshot) -> DiffPlan:
    """Compare two snapshots and return the plan for one pass."""
    dirs_to_delete = sorted(
        destination.dirs - source.dirs,
        key=lambda d: (-len(d), d),
    )
    dirs_to_create = sorted(
        source.dirs - destination.dirs,
        key=lambda d: (_depth(d), d),
    )
    return DiffPlan(
        files_to_copy=source.files - destination.files,
        files_to_delete=destination.files - source.files,
        dirs_to_delete=tuple(dirs_to_delete),
        common_files=source.files & destination.files,
        dirs_to_create=tuple(dirs_to_create),
    )
