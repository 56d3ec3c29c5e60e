"""Subprocess helpers for source and action commands.

Sources are run to completion with a timeout and their stdout captured.
Actions are spawned detached in their own session; a daemon thread feeds
their stdin and reaps them so finished actions do not linger as zombies.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import sysconfig
import threading
from collections.abc import Sequence
from pathlib import Path

from ..errors import ActionSpawnFailed, ProviderLoadFailed

logger = logging.getLogger(__name__)

STDERR_PREVIEW_CHARS = 200


def resolve_command(name: str) -> str:
    """Resolve a program name, preferring scripts installed beside heats."""
    path = Path(name)
    if path.is_absolute() or len(path.parts) > 1:
        return name
    scripts_dir = sysconfig.get_path("scripts")
    if scripts_dir:
        candidate = Path(scripts_dir) / name
        if candidate.exists():
            return str(candidate)
    found = shutil.which(name)
    return found if found is not None else name


def _stderr_preview(raw: bytes | None) -> str:
    if not raw:
        return ""
    text = raw.decode("utf-8", errors="replace").strip()
    if len(text) > STDERR_PREVIEW_CHARS:
        text = text[: STDERR_PREVIEW_CHARS - 3] + "..."
    return text


def capture_lines(
    name: str,
    argv: Sequence[str],
    *,
    timeout: float,
    input_text: str | None = None,
) -> list[str]:
    """Run a source command to exit and return its stdout lines.

    Spawn errors, timeouts, non-zero exit and output that is not valid UTF-8
    raise ``ProviderLoadFailed`` tagged with ``name``.
    """
    if not argv:
        raise ProviderLoadFailed(name, "empty source command")
    cmd = [resolve_command(argv[0]), *argv[1:]]
    try:
        proc = subprocess.run(
            cmd,
            input=input_text.encode("utf-8") if input_text is not None else None,
            stdin=None if input_text is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            timeout=timeout if timeout > 0 else None,
            check=False,
        )
    except subprocess.TimeoutExpired:
        raise ProviderLoadFailed(name, f"timed out after {timeout:g}s") from None
    except OSError as exc:
        raise ProviderLoadFailed(name, f"failed to spawn {argv[0]!r}: {exc}") from exc

    if proc.returncode != 0:
        detail = _stderr_preview(proc.stderr)
        cause = f"exit status {proc.returncode}"
        raise ProviderLoadFailed(name, f"{cause}: {detail}" if detail else cause)

    try:
        text = proc.stdout.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ProviderLoadFailed(name, f"output is not valid UTF-8: {exc}") from exc
    return [line.removesuffix("\r") for line in text.split("\n")]


def _feed_and_reap(proc: subprocess.Popen, name: str, payload: bytes | None) -> None:
    if payload is not None and proc.stdin is not None:
        try:
            proc.stdin.write(payload)
        except OSError as exc:
            logger.warning("Failed to write action input to %s: %s", name, exc)
        finally:
            try:
                proc.stdin.close()
            except OSError:
                pass
    try:
        proc.wait()
    except OSError:
        return


def spawn_detached(argv: Sequence[str], *, input_text: str | None = None) -> subprocess.Popen:
    """Start ``argv`` without waiting for it; raise ``ActionSpawnFailed`` on error.

    ``input_text`` is written to the child's stdin on the reaper thread, so a
    child that never reads it cannot block the caller.
    """
    if not argv:
        raise ActionSpawnFailed(tuple(argv), "empty action command")
    cmd = [resolve_command(argv[0]), *argv[1:]]
    logger.info("Executing action: %s", cmd)
    try:
        proc = subprocess.Popen(
            cmd,
            stdin=subprocess.PIPE if input_text is not None else subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as exc:
        raise ActionSpawnFailed(tuple(argv), str(exc)) from exc

    payload = input_text.encode("utf-8") if input_text is not None else None
    threading.Thread(
        target=_feed_and_reap,
        args=(proc, argv[0], payload),
        name="heats-action-reaper",
        daemon=True,
    ).start()
    return proc
