"""Per-user runtime paths for the IPC socket and daemon pid file."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from platformdirs import user_runtime_dir

from ..config import APP_NAME

logger = logging.getLogger(__name__)

SOCKET_FILENAME = "heats.sock"
PID_FILENAME = "heats.pid"
RUNTIME_DIR_ENV = "HEATS_RUNTIME_DIR"


def runtime_dir() -> Path:
    """Resolve (and create) the directory holding runtime files.

    ``$HEATS_RUNTIME_DIR`` wins; otherwise the platform user runtime dir is
    used, falling back to a per-uid directory under the system temp dir when
    that cannot be created.
    """
    override = os.environ.get(RUNTIME_DIR_ENV, "").strip()
    candidates = [Path(override)] if override else []
    candidates.append(Path(user_runtime_dir(APP_NAME, appauthor=False)))
    candidates.append(Path(tempfile.gettempdir()) / f"{APP_NAME}-{os.getuid()}")
    for candidate in candidates:
        try:
            candidate.mkdir(parents=True, exist_ok=True, mode=0o700)
        except OSError:
            continue
        return candidate
    return candidates[-1]


def socket_path() -> Path:
    return runtime_dir() / SOCKET_FILENAME


def pid_path() -> Path:
    return runtime_dir() / PID_FILENAME


def write_pid(path: Path | None = None) -> None:
    target = path if path is not None else pid_path()
    try:
        target.write_text(f"{os.getpid()}\n", encoding="utf-8")
    except OSError as exc:
        logger.warning("Failed to write pid file %s: %s", target, exc)


def read_pid(path: Path | None = None) -> int | None:
    """Return the recorded daemon pid, or ``None`` if missing or invalid."""
    target = path if path is not None else pid_path()
    try:
        value = int(target.read_text(encoding="utf-8").strip())
    except (OSError, ValueError):
        return None
    return value if value > 0 else None


def remove_pid(path: Path | None = None) -> None:
    target = path if path is not None else pid_path()
    try:
        target.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Failed to remove pid file %s: %s", target, exc)
