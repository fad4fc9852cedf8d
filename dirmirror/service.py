"""
Headless runner for Dir Mirror.

Resolves settings from the config file and the command line, sets up
logging, and runs the scheduler in the foreground until SIGINT/SIGTERM:

    python -m dirmirror --source /data/in --destination /data/out --interval 30
    python -m dirmirror --once        (single pass, exit status 1 on failures)
    python -m dirmirror --save ...    (persist the given values to config.json)
"""

from __future__ import annotations

import argparse
import logging
import logging.handlers
import signal
import sys
from pathlib import Path

from dirmirror import __app_name__, __version__
from dirmirror.config import (
    COMPARE_MODES,
    Config,
    ConfigError,
    SyncSettings,
    resolve_settings,
)
from dirmirror.engine import MirrorEngine
from dirmirror.platform_utils import get_log_path
from dirmirror.scheduler import SyncScheduler
from dirmirror.watcher import SourceWatcher

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(settings: SyncSettings) -> Path:
    """Configure rotating file log and stderr handler.  Returns the log path."""
    log_path = get_log_path(settings.log_folder or None)
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    fmt = logging.Formatter(_LOG_FORMAT)

    # Rotating file handler
    max_bytes = settings.max_log_size_mb * 1024 * 1024
    fh = logging.handlers.RotatingFileHandler(
        str(log_path),
        maxBytes=max_bytes,
        backupCount=settings.log_backup_count,
        encoding="utf-8",
    )
    fh.setLevel(level)
    fh.setFormatter(fmt)
    root_logger.addHandler(fh)

    sh = logging.StreamHandler(sys.stderr)
    sh.setLevel(level)
    sh.setFormatter(fmt)
    root_logger.addHandler(sh)
    return log_path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dir-mirror",
        description=(
            "Keep a destination folder an identical copy of a source folder, "
            "re-synchronising every interval."
        ),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", type=Path, help="Path to config.json")
    parser.add_argument("--source", dest="source_folder", help="Source folder path")
    parser.add_argument(
        "--destination", dest="destination_folder", help="Destination (replica) folder path"
    )
    parser.add_argument("--log-dir", dest="log_folder", help="Folder for the log file")
    parser.add_argument(
        "--interval", dest="interval_seconds", type=float,
        help="Seconds between passes (> 0)"
    )
    parser.add_argument(
        "--compare-mode", choices=COMPARE_MODES, help="File content comparison mode"
    )
    parser.add_argument(
        "--verify", dest="verify_copies", action="store_true", default=None,
        help="Verify each copy with SHA-256",
    )
    parser.add_argument(
        "--workers", dest="copy_workers", type=int, help="Parallel copy threads"
    )
    parser.add_argument(
        "--watch", dest="watch_source", action="store_true", default=None,
        help="Run an early pass when the source folder changes",
    )
    parser.add_argument(
        "--settle", dest="settle_seconds", type=float,
        help="Quiet seconds before a change triggers a pass",
    )
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument(
        "--save", action="store_true", help="Save the given values to the config file"
    )
    parser.add_argument(
        "--once", action="store_true", help="Run a single pass and exit"
    )
    return parser


_OVERRIDE_KEYS = (
    "source_folder",
    "destination_folder",
    "log_folder",
    "interval_seconds",
    "compare_mode",
    "verify_copies",
    "copy_workers",
    "watch_source",
    "settle_seconds",
    "log_level",
)


def load_settings(args: argparse.Namespace) -> SyncSettings:
    """Merge parsed *args* over the config file and validate."""
    cfg = Config(args.config)
    overrides = {key: getattr(args, key) for key in _OVERRIDE_KEYS}
    settings = resolve_settings(cfg, overrides)
    if args.save:
        cfg.update(overrides)
        cfg.save()
    return settings


def run_once(settings: SyncSettings) -> int:
    """Run a single pass.  Returns 0 on success, 1 if anything failed."""
    engine = MirrorEngine.from_settings(settings)
    try:
        stats = engine.run_pass()
    except OSError:
        logger.exception("Synchronisation pass failed.")
        return 1
    return 1 if stats.failed else 0


def run_foreground(settings: SyncSettings) -> None:
    """Run the scheduler (and optional watcher) until SIGINT/SIGTERM."""
    engine = MirrorEngine.from_settings(settings)
    scheduler = SyncScheduler.for_engine(engine, settings.interval)

    watcher = None
    if settings.watch_source:
        watcher = SourceWatcher(
            settings.source,
            on_change=scheduler.request_pass,
            settle_seconds=settings.settle_seconds,
        )

    def _handler(sig, frame):
        logger.info("Received signal %s, stopping.", sig)
        if watcher:
            watcher.stop()
        scheduler.stop()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)

    print(f"{__app_name__} running (press Ctrl-C to stop)…")
    if watcher:
        watcher.start()
    scheduler.run_forever()
    print(f"{__app_name__} stopped.")


def main(argv: list[str] | None = None) -> int:
    """Entry point for the ``dir-mirror`` command.  Returns the exit status."""
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings(args)
    except ConfigError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2

    log_path = setup_logging(settings)
    logger.info("%s %s starting.", __app_name__, __version__)
    logger.info("Log file: %s", log_path)
    logger.info("Source folder path: %s", settings.source)
    logger.info("Destination folder path: %s", settings.destination)
    logger.info("Synchronisation interval: %s seconds", settings.interval)

    try:
        if args.once:
            return run_once(settings)
        run_foreground(settings)
    except OSError as exc:
        logger.error("Cannot start synchronisation: %s", exc)
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
