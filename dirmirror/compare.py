"""
File equality checks for Dir Mirror.

Decides whether a file present in both trees needs updating. Cheap
tests run first: differing lengths mean different files, and two paths
naming the same entry are trivially identical. Only then is content read.

Two content modes are available:

``aligned``
    Both files are read whole and compared in 8-byte words. Any trailing
    1-7 bytes past the last full word are never compared, so two files
    of equal length that differ only in that tail are reported identical.
``strict``
    Every byte is compared, streaming both files in fixed-size chunks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from dirmirror.config import COMPARE_ALIGNED, COMPARE_STRICT
from dirmirror.platform_utils import same_path_ignore_case

logger = logging.getLogger(__name__)

_WORD_SIZE = 8
_READ_CHUNK = 256 * 1024  # 256 KiB read chunks for strict comparison


@dataclass(frozen=True)
class FilePair:
    """Source and destination metadata for one relative path."""
    relative_path: str
    source: Path
    destination: Path
    source_size: int
    destination_size: int

    @classmethod
    def resolve(
        cls,
        relative_path: str,
        source_root: str | Path,
        destination_root: str | Path,
    ) -> FilePair:
        """
        Stat both sides of *relative_path*.

        Raises FileNotFoundError naming the missing side when either file
        no longer exists (or is not a regular file).
        """
        source = Path(source_root) / relative_path
        destination = Path(destination_root) / relative_path
        if not source.is_file():
            raise FileNotFoundError(f"Source file missing: {source}")
        if not destination.is_file():
            raise FileNotFoundError(f"Destination file missing: {destination}")
        return cls(
            relative_path=relative_path,
            source=source,
            destination=destination,
            source_size=source.stat().st_size,
            destination_size=destination.stat().st_size,
        )


def _aligned_contents_equal(source: Path, destination: Path) -> bool:
    src = source.read_bytes()
    dst = destination.read_bytes()
    last_word = len(src) - (len(src) % _WORD_SIZE)
    # Comparing the aligned prefixes is equivalent to comparing word by word
    return memoryview(src)[:last_word] == memoryview(dst)[:last_word]


def _strict_contents_equal(source: Path, destination: Path) -> bool:
    with open(source, "rb") as fs, open(destination, "rb") as fd:
        while True:
            a = fs.read(_READ_CHUNK)
            b = fd.read(_READ_CHUNK)
            if a != b:
                return False
            if not a:
                return True


def files_identical(pair: FilePair, mode: str = COMPARE_ALIGNED) -> bool:
    """Return True if the two files of *pair* are considered identical."""
    if pair.source_size != pair.destination_size:
        logger.debug(
            "Length differs for %s (%d != %d)",
            pair.relative_path, pair.source_size, pair.destination_size,
        )
        return False

    if same_path_ignore_case(pair.source, pair.destination):
        return True

    if mode == COMPARE_STRICT:
        return _strict_contents_equal(pair.source, pair.destination)
    if mode == COMPARE_ALIGNED:
        return _aligned_contents_equal(pair.source, pair.destination)
    raise ValueError(f"Unknown compare mode: {mode!r}")

