"""Public package surface for heats.

Exports the daemon and client entrypoints for programmatic invocation.
Most implementation lives in submodules under ``heats``.
"""

from __future__ import annotations


def main(*args, **kwargs):
    """Lazily import the client entrypoint to keep package imports lightweight."""
    from .cli import main as _main

    return _main(*args, **kwargs)


def daemon_main(*args, **kwargs):
    """Lazily import the daemon entrypoint."""
    from .cli import daemon_main as _daemon_main

    return _daemon_main(*args, **kwargs)


__all__ = ["daemon_main", "main"]
