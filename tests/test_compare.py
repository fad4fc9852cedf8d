"""Tests for the file equality check."""

from pathlib import Path

import pytest

from dirmirror.compare import FilePair, files_identical
from dirmirror.config import COMPARE_ALIGNED, COMPARE_STRICT

from conftest import write


def pair_for(src: Path, dst: Path, rel: str) -> FilePair:
    return FilePair.resolve(rel, src, dst)


class TestFilesIdentical:
    def test_different_length_is_not_identical(self, src, dst):
        write(src / "f", b"12345678")
        write(dst / "f", b"123456789")
        assert files_identical(pair_for(src, dst, "f")) is False

    def test_identical_content(self, src, dst):
        data = bytes(range(256)) * 3
        write(src / "same.txt", data)
        write(dst / "same.txt", data)
        pair = pair_for(src, dst, "same.txt")
        assert files_identical(pair, COMPARE_ALIGNED) is True
        assert files_identical(pair, COMPARE_STRICT) is True

    def test_difference_in_aligned_prefix(self, src, dst):
        write(src / "f", b"AAAAAAAABBBBBBBB")
        write(dst / "f", b"AAAAAAAABBBBBBBC")
        assert files_identical(pair_for(src, dst, "f"), COMPARE_ALIGNED) is False

    def test_difference_in_first_word(self, src, dst):
        write(src / "f", b"xAAAAAAAtail")
        write(dst / "f", b"yAAAAAAAtail")
        assert files_identical(pair_for(src, dst, "f"), COMPARE_ALIGNED) is False

    def test_aligned_mode_ignores_trailing_remainder(self, src, dst):
        # 15 bytes: one full 8-byte word, then 7 unchecked bytes
        write(src / "f", b"SAMEHEAD" + b"1234567")
        write(dst / "f", b"SAMEHEAD" + b"abcdefg")
        pair = pair_for(src, dst, "f")
        assert pair.source_size == pair.destination_size == 15
        assert files_identical(pair, COMPARE_ALIGNED) is True

    def test_strict_mode_sees_trailing_remainder(self, src, dst):
        write(src / "f", b"SAMEHEAD" + b"1234567")
        write(dst / "f", b"SAMEHEAD" + b"abcdefg")
        assert files_identical(pair_for(src, dst, "f"), COMPARE_STRICT) is False

    def test_short_files_below_one_word(self, src, dst):
        write(src / "f", b"abc")
        write(dst / "f", b"xyz")
        pair = pair_for(src, dst, "f")
        assert files_identical(pair, COMPARE_ALIGNED) is True
        assert files_identical(pair, COMPARE_STRICT) is False

    def test_empty_files(self, src, dst):
        write(src / "f", b"")
        write(dst / "f", b"")
        assert files_identical(pair_for(src, dst, "f"), COMPARE_STRICT) is True

    def test_strict_mode_spans_read_chunks(self, src, dst):
        data = b"z" * (600 * 1024)
        write(src / "big", data)
        write(dst / "big", data[:-1] + b"y")
        assert files_identical(pair_for(src, dst, "big"), COMPARE_STRICT) is False
        write(dst / "big", data)
        assert files_identical(pair_for(src, dst, "big"), COMPARE_STRICT) is True

    def test_same_path_ignoring_case_is_identical_without_reading(self, tmp_path):
        # Neither file exists; the identity check must answer before any read
        pair = FilePair(
            relative_path="x",
            source=tmp_path / "Root" / "x",
            destination=tmp_path / "root" / "X",
            source_size=4,
            destination_size=4,
        )
        assert files_identical(pair) is True

    def test_length_check_runs_before_identity_check(self, tmp_path):
        pair = FilePair(
            relative_path="x",
            source=tmp_path / "x",
            destination=tmp_path / "x",
            source_size=1,
            destination_size=2,
        )
        assert files_identical(pair) is False

    def test_unknown_mode_rejected(self, src, dst):
        write(src / "f", b"1234")
        write(dst / "f", b"1234")
        with pytest.raises(ValueError):
            files_identical(pair_for(src, dst, "f"), "fuzzy")


class TestFilePairResolve:
    def test_sizes_and_paths(self, src, dst):
        write(src / "d" / "f", b"12345")
        write(dst / "d" / "f", b"12")
        pair = FilePair.resolve("d/f", src, dst)
        assert pair.source == src / "d" / "f"
        assert pair.destination == dst / "d" / "f"
        assert (pair.source_size, pair.destination_size) == (5, 2)

    def test_missing_destination(self, src, dst):
        write(src / "f", b"1")
        with pytest.raises(FileNotFoundError, match="Destination"):
            FilePair.resolve("f", src, dst)

    def test_missing_source(self, src, dst):
        write(dst / "f", b"1")
        with pytest.raises(FileNotFoundError, match="Source"):
            FilePair.resolve("f", src, dst)
