"""Configuration management for Dir Mirror.

Stores and retrieves user settings from a JSON config file in the
platform-appropriate application data directory, and turns them (plus
any command-line overrides) into validated settings for the engine.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dirmirror.platform_utils import (
    IS_WINDOWS,
    WINDOWS_MAX_PATH,
    is_within,
    same_path_ignore_case,
)
from dirmirror.platform_utils import (
    get_config_dir as _platform_config_dir,
)

logger = logging.getLogger(__name__)

# Content comparison modes
COMPARE_ALIGNED = "aligned"
COMPARE_STRICT = "strict"
COMPARE_MODES = (COMPARE_ALIGNED, COMPARE_STRICT)

DEFAULT_CONFIG: dict[str, Any] = {
    "source_folder": "",
    "destination_folder": "",
    "log_folder": "",  # Empty = config directory
    "interval_seconds": 60.0,
    "compare_mode": COMPARE_ALIGNED,  # aligned | strict
    "verify_copies": False,  # SHA-256 checksum after copy
    "copy_workers": 1,  # >1 runs create/update copies in a thread pool
    # ---- change watching ----
    "watch_source": False,  # trigger an early pass on source changes
    "settle_seconds": 2.0,  # quiet period before a change triggers a pass
    # ---- logging ----
    "log_level": "INFO",
    "max_log_size_mb": 10,  # rotate log when it exceeds this size
    "log_backup_count": 3,  # number of rotated log files to keep
}


class ConfigError(ValueError):
    """Raised when configuration values cannot be used to start syncing."""


def get_config_dir() -> Path:
    """Return the platform-appropriate application config directory."""
    return _platform_config_dir()


def get_config_path() -> Path:
    """Return the path to the configuration file."""
    return get_config_dir() / "config.json"


class Config:
    """Configuration manager backed by a JSON file."""

    def __init__(self, path: Path | None = None):
        """Load config from *path*, falling back to the platform default."""
        self._path = path or get_config_path()
        self._data: dict[str, Any] = dict(DEFAULT_CONFIG)
        self.load()

    @property
    def path(self) -> Path:
        return self._path

    # ---- persistence ----

    def load(self) -> None:
        """Load configuration from disk, applying defaults for missing keys."""
        if self._path.exists():
            try:
                with open(self._path, encoding="utf-8") as fh:
                    stored = json.load(fh)
                if not isinstance(stored, dict):
                    raise ValueError("top-level JSON value is not an object")
                # Merge stored values over defaults so new keys get defaults
                self._data = {**DEFAULT_CONFIG, **stored}
                logger.info("Configuration loaded from %s", self._path)
            except (ValueError, OSError) as exc:
                logger.warning("Could not read config (%s); using defaults.", exc)
                self._data = dict(DEFAULT_CONFIG)
        else:
            self._data = dict(DEFAULT_CONFIG)
            self.save()
            logger.info("Created default configuration at %s", self._path)

    def save(self) -> None:
        """Persist the current configuration to disk."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh, indent=2)
            logger.info("Configuration saved.")
        except OSError as exc:
            logger.error("Failed to save configuration: %s", exc)

    def update(self, values: dict[str, Any]) -> None:
        """Overlay *values* onto the current settings, ignoring None entries."""
        for key, value in values.items():
            if key not in DEFAULT_CONFIG:
                raise KeyError(f"Unknown configuration key: {key}")
            if value is not None:
                self._data[key] = value

    def get(self, key: str) -> Any:
        return self._data.get(key, DEFAULT_CONFIG.get(key))


# ---- validation --------------------------------------------------------


def validate_dir_path(path: str | None, name: str) -> str:
    """
    Check that *path* is usable as a folder path and return it absolute.

    The folder itself does not need to exist yet.
    """
    if not path or not str(path).strip():
        raise ConfigError(f"{name} is missing.")
    path = str(path).strip()
    if "\0" in path:
        raise ConfigError(f"{name} contains invalid characters: {path!r}")
    if not Path(path).name:
        raise ConfigError(f"{name} does not name a folder: {path!r}")
    if IS_WINDOWS and len(path) > WINDOWS_MAX_PATH:
        raise ConfigError(
            f"{name} exceeds {WINDOWS_MAX_PATH} characters: {path!r}"
        )
    try:
        return os.path.abspath(path)
    except (OSError, ValueError) as exc:
        raise ConfigError(f"{name} cannot be resolved: {exc}") from exc


def parse_interval(value: Any) -> float:
    """Return *value* as a positive number of seconds."""
    try:
        interval = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Sync interval is not a number: {value!r}") from None
    if not interval > 0 or interval == float("inf"):
        raise ConfigError(f"Sync interval must be a positive number of seconds: {value!r}")
    return interval


@dataclass(frozen=True)
class SyncSettings:
    """Validated values needed to construct and run the engine."""
    source: str
    destination: str
    interval: float
    log_folder: str = ""
    compare_mode: str = COMPARE_ALIGNED
    verify_copies: bool = False
    copy_workers: int = 1
    watch_source: bool = False
    settle_seconds: float = 2.0
    log_level: str = "INFO"
    max_log_size_mb: int = 10
    log_backup_count: int = 3


def resolve_settings(
    config: Config,
    overrides: dict[str, Any] | None = None,
) -> SyncSettings:
    """
    Merge command-line *overrides* over *config* and validate the result.

    Raises ConfigError describing the first unusable value.
    """
    values = {key: config.get(key) for key in DEFAULT_CONFIG}
    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = value

    source = validate_dir_path(values["source_folder"], "Source folder path")
    destination = validate_dir_path(
        values["destination_folder"], "Destination folder path"
    )
    if is_within(source, destination) or is_within(destination, source):
        raise ConfigError(
            "Source and destination folders must not be the same folder "
            f"or nested inside one another: {source!r}, {destination!r}"
        )
    if same_path_ignore_case(source, destination):
        raise ConfigError(
            "Source and destination folders must differ by more than letter case: "
            f"{source!r}, {destination!r}"
        )

    log_folder = values["log_folder"] or ""
    if log_folder:
        log_folder = validate_dir_path(log_folder, "Log folder path")

    compare_mode = str(values["compare_mode"]).lower()
    if compare_mode not in COMPARE_MODES:
        raise ConfigError(
            f"Unknown compare mode {compare_mode!r}; expected one of {COMPARE_MODES}"
        )

    try:
        workers = int(values["copy_workers"])
        settle = float(values["settle_seconds"])
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid numeric setting: {exc}") from None
    if workers < 1:
        raise ConfigError(f"copy_workers must be at least 1: {workers}")
    if settle < 0:
        raise ConfigError(f"settle_seconds must not be negative: {settle}")

    return SyncSettings(
        source=source,
        destination=destination,
        interval=parse_interval(values["interval_seconds"]),
        log_folder=log_folder,
        compare_mode=compare_mode,
        verify_copies=bool(values["verify_copies"]),
        copy_workers=workers,
        watch_source=bool(values["watch_source"]),
        settle_seconds=settle,
        log_level=str(values["log_level"]).upper(),
        max_log_size_mb=max(1, int(values["max_log_size_mb"])),
        log_backup_count=max(0, int(values["log_backup_count"])),
    )
