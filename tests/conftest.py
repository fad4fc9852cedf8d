"""Pytest bootstrap and shared fixtures.

The ``pytest`` console script can run with a sys.path that excludes the
repository root. Ensure ``import dirmirror`` resolves to the local package.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
PROJECT_ROOT_STR = str(PROJECT_ROOT)

if PROJECT_ROOT_STR not in sys.path:
    sys.path.insert(0, PROJECT_ROOT_STR)


def write(path: Path, data: bytes | str) -> Path:
    """Create *path* (and its parents) holding *data*."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(data, str):
        data = data.encode("utf-8")
    path.write_bytes(data)
    return path


def tree(root: Path) -> dict[str, bytes]:
    """Map every file under *root* (posix relative path) to its bytes."""
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


def dirs(root: Path) -> set[str]:
    return {p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_dir()}


@pytest.fixture
def src(tmp_path):
    d = tmp_path / "source"
    d.mkdir()
    return d


@pytest.fixture
def dst(tmp_path):
    d = tmp_path / "replica"
    d.mkdir()
    return d
