"""Typed failures raised by the launcher core.

Every error derives from ``HeatsError``. The dispatcher and IPC server catch
these and degrade them to empty or cancelled results; only
``IpcEndpointInUse`` is allowed to stop daemon startup.
"""

from __future__ import annotations


class HeatsError(Exception):
    """Base class for launcher errors."""


class ConfigError(HeatsError):
    """A configuration entry failed validation."""


class ProviderLoadFailed(HeatsError):
    """A provider's source command could not produce an item set."""

    def __init__(self, provider: str, cause: str) -> None:
        super().__init__(f"provider {provider!r} failed to load: {cause}")
        self.provider = provider
        self.cause = cause


class ActionSpawnFailed(HeatsError):
    """An action command could not be started."""

    def __init__(self, command: list[str] | tuple[str, ...], cause: str) -> None:
        super().__init__(f"failed to spawn action {list(command)!r}: {cause}")
        self.command = tuple(command)
        self.cause = cause


class IpcProtocolError(HeatsError):
    """A client sent input the selection protocol cannot accept."""


class IpcEndpointInUse(HeatsError):
    """Another live daemon already owns the IPC socket path."""


class DisplayResolutionFailed(HeatsError):
    """A fixed-mode display name did not match any connected display."""

    def __init__(self, name: str) -> None:
        super().__init__(f"display {name!r} not found")
        self.name = name
