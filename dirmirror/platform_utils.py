"""
Cross-platform utilities for Dir Mirror.

Centralises all OS-detection logic so every other module can import
a single canonical set of helpers rather than scattering ``sys.platform``
checks throughout the codebase.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

# ---- platform flags ----------------------------------------------------

IS_WINDOWS: bool = sys.platform == "win32"
IS_MACOS: bool = sys.platform == "darwin"

# Legacy Win32 path length limit
WINDOWS_MAX_PATH = 260

_APP_DIR_NAME = "DirMirror"

# ---- directories -------------------------------------------------------


def get_config_dir() -> Path:
    """
    Return the application config directory, created if needed.

    - Windows : ``%APPDATA%\\DirMirror``
    - macOS   : ``~/Library/Application Support/DirMirror``
    - Linux   : ``$XDG_CONFIG_HOME/DirMirror`` (default ``~/.config``)
    """
    if IS_WINDOWS:
        base = os.environ.get("APPDATA", str(Path.home()))
    elif IS_MACOS:
        base = str(Path.home() / "Library" / "Application Support")
    else:
        base = os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config"))

    config_dir = Path(base) / _APP_DIR_NAME
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_log_path(log_dir: str | Path | None = None) -> Path:
    """Return the log file path inside *log_dir* (default: the config directory)."""
    directory = Path(log_dir) if log_dir else get_config_dir()
    directory.mkdir(parents=True, exist_ok=True)
    return directory / "dirmirror.log"


# ---- path helpers ------------------------------------------------------


def same_path_ignore_case(first: str | Path, second: str | Path) -> bool:
    """Return True when both paths spell the same absolute path, ignoring case."""
    a = os.path.abspath(os.fspath(first))
    b = os.path.abspath(os.fspath(second))
    return a.casefold() == b.casefold()


def is_within(path: str | Path, root: str | Path) -> bool:
    """Return True if *path* is *root* or lies beneath it."""
    p = os.path.normcase(os.path.abspath(os.fspath(path)))
    r = os.path.normcase(os.path.abspath(os.fspath(root)))
    try:
        return os.path.commonpath([p, r]) == r
    except ValueError:
        # Different drives on Windows
        return False
