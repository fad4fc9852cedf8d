"""Tests for the command-line runner."""

import json
import logging

import pytest

from dirmirror import service

from conftest import tree, write


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def base_args(tmp_path, src, dst):
    return [
        "--config", str(tmp_path / "config.json"),
        "--source", str(src),
        "--destination", str(dst),
        "--log-dir", str(tmp_path / "logs"),
        "--interval", "1",
    ]


class TestMain:
    def test_once_mirrors_and_exits(self, tmp_path, src, dst):
        write(src / "a.txt", b"0123456789")
        write(src / "nested" / "b.txt", b"b")
        write(dst / "old.txt", b"old")

        status = service.main(base_args(tmp_path, src, dst) + ["--once"])

        assert status == 0
        assert tree(dst) == tree(src)
        log_text = (tmp_path / "logs" / "dirmirror.log").read_text(encoding="utf-8")
        assert "File copied from source: a.txt" in log_text
        assert "File deleted from destination folder: old.txt" in log_text

    def test_once_reports_item_failures(self, tmp_path, src, dst, monkeypatch):
        import shutil

        write(src / "a.txt", b"a")

        def locked(*args, **kwargs):
            raise PermissionError(13, "locked")

        monkeypatch.setattr(shutil, "copyfile", locked)
        assert service.main(base_args(tmp_path, src, dst) + ["--once"]) == 1

    def test_invalid_interval_exits_before_running(self, tmp_path, src, dst, capsys):
        args = base_args(tmp_path, src, dst)
        args[args.index("--interval") + 1] = "-5"
        write(src / "a.txt", b"a")

        assert service.main(args + ["--once"]) == 2
        assert "interval" in capsys.readouterr().err
        assert not (dst / "a.txt").exists()

    def test_save_persists_values(self, tmp_path, src, dst):
        args = base_args(tmp_path, src, dst) + ["--compare-mode", "strict", "--save", "--once"]
        assert service.main(args) == 0
        stored = json.loads((tmp_path / "config.json").read_text(encoding="utf-8"))
        assert stored["source_folder"] == str(src)
        assert stored["destination_folder"] == str(dst)
        assert stored["compare_mode"] == "strict"
        assert stored["interval_seconds"] == 1.0

    def test_config_file_supplies_missing_arguments(self, tmp_path, src, dst):
        config_path = tmp_path / "config.json"
        config_path.write_text(
            json.dumps({
                "source_folder": str(src),
                "destination_folder": str(dst),
                "interval_seconds": 30,
                "log_folder": str(tmp_path / "logs"),
            }),
            encoding="utf-8",
        )
        write(src / "from-config.txt", b"c")
        assert service.main(["--config", str(config_path), "--once"]) == 0
        assert (dst / "from-config.txt").read_bytes() == b"c"

    def test_unusable_destination_exits_without_traceback(self, tmp_path, src, capsys):
        blocker = tmp_path / "blocker"
        write(blocker, b"x")

        assert service.main(base_args(tmp_path, src, blocker)) == 2
        assert "ERROR:" in capsys.readouterr().err


def test_parser_defaults_leave_config_values_alone():
    args = service.build_parser().parse_args([])
    assert args.verify_copies is None
    assert args.watch_source is None
    assert args.interval_seconds is None
    assert not args.once
