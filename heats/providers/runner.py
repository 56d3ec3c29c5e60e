"""Provider loading with a time-to-live cache and single-flight spawning.

``ProviderRunner`` is the only owner of cached item sets. Loads of different
providers run concurrently; concurrent loads of the same provider share one
source process and all callers observe the same result or the same error.
A load is never cancelled once started, so a caller that gives up still
leaves a warm cache behind for the next one.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Protocol

from ..config import ProviderConfig
from ..errors import ProviderLoadFailed
from ..items import Item, parse_item_lines
from .process import capture_lines, spawn_detached

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\{([A-Za-z_][A-Za-z0-9_.]*)\}")
LOAD_WORKERS = 4


class ActionTarget(Protocol):
    """Anything carrying an action template: providers and evaluators."""

    name: str
    action: tuple[str, ...]
    field: str
    action_input: str


@dataclass(frozen=True)
class CacheEntry:
    items: tuple[Item, ...]
    loaded_at: float


@dataclass(frozen=True)
class LoadOutcome:
    """Merged result of loading several providers."""

    items: tuple[Item, ...]
    failures: tuple[ProviderLoadFailed, ...]


class _Flight:
    """One in-progress load that late callers wait on."""

    def __init__(self) -> None:
        self.done = threading.Event()
        self.items: tuple[Item, ...] = ()
        self.error: ProviderLoadFailed | None = None


def build_action_command(target: ActionTarget, item: Item) -> tuple[list[str], str | None]:
    """Resolve an action template against ``item``.

    ``{path}`` placeholders are replaced by ``item.get_field(path)``. In
    ``arg`` input mode a template without placeholders gets the value of
    ``target.field`` appended; in ``stdin`` mode that value is returned as the
    child's standard input instead.
    """
    has_placeholder = False

    def substitute(match: re.Match[str]) -> str:
        nonlocal has_placeholder
        has_placeholder = True
        return item.get_field(match.group(1))

    argv = [PLACEHOLDER_RE.sub(substitute, part) for part in target.action]
    value = item.get_field(target.field)
    if target.action_input == "stdin":
        return argv, value
    if not has_placeholder:
        argv.append(value)
    return argv, None


class ProviderRunner:
    """Cache-aware source loader and action launcher."""

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        capture: Callable[..., list[str]] = capture_lines,
        spawn: Callable[..., object] = spawn_detached,
        max_workers: int = LOAD_WORKERS,
    ) -> None:
        self._clock = clock
        self._capture = capture
        self._spawn = spawn
        self._max_workers = max(1, max_workers)
        self._lock = threading.Lock()
        self._cache: dict[str, CacheEntry] = {}
        self._inflight: dict[str, _Flight] = {}
        self._refresh_stop: threading.Event | None = None

    def _fresh_entry(self, provider: ProviderConfig) -> CacheEntry | None:
        if not provider.caches:
            return None
        entry = self._cache.get(provider.name)
        if entry is None:
            return None
        if self._clock() - entry.loaded_at >= provider.cache_interval:
            return None
        return entry

    def cached(self, provider: ProviderConfig) -> tuple[Item, ...] | None:
        """Return the cached item set if it is still within its interval."""
        with self._lock:
            entry = self._fresh_entry(provider)
        return entry.items if entry is not None else None

    def invalidate(self, name: str | None = None) -> None:
        with self._lock:
            if name is None:
                self._cache.clear()
            else:
                self._cache.pop(name, None)

    def _fetch(self, provider: ProviderConfig) -> tuple[Item, ...]:
        lines = self._capture(provider.name, provider.source, timeout=provider.timeout)
        items = parse_item_lines(lines, provider=provider.name)
        logger.debug("Provider %r produced %d items", provider.name, len(items))
        return items

    def load(self, provider: ProviderConfig) -> tuple[Item, ...]:
        """Return the provider's items, spawning its source only when needed.

        Raises ``ProviderLoadFailed``; failed loads are not cached.
        """
        with self._lock:
            entry = self._fresh_entry(provider)
            if entry is not None:
                return entry.items
            flight = self._inflight.get(provider.name)
            leader = flight is None
            if flight is None:
                flight = _Flight()
                self._inflight[provider.name] = flight

        if not leader:
            flight.done.wait()
            if flight.error is not None:
                raise flight.error
            return flight.items

        try:
            flight.items = self._fetch(provider)
        except ProviderLoadFailed as exc:
            flight.error = exc
        except Exception as exc:
            flight.error = ProviderLoadFailed(provider.name, str(exc))
        finally:
            with self._lock:
                if flight.error is None and provider.caches:
                    self._cache[provider.name] = CacheEntry(items=flight.items, loaded_at=self._clock())
                self._inflight.pop(provider.name, None)
            flight.done.set()

        if flight.error is not None:
            logger.warning("%s", flight.error)
            raise flight.error
        return flight.items

    def load_many(self, providers: Sequence[ProviderConfig]) -> LoadOutcome:
        """Load providers concurrently, merging items in provider order.

        Failures are collected rather than raised.
        """
        if not providers:
            return LoadOutcome(items=(), failures=())

        def load_one(provider: ProviderConfig) -> tuple[tuple[Item, ...], ProviderLoadFailed | None]:
            try:
                return self.load(provider), None
            except ProviderLoadFailed as exc:
                return (), exc

        workers = min(self._max_workers, len(providers))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="heats-provider") as pool:
            results = list(pool.map(load_one, providers))

        items: list[Item] = []
        failures: list[ProviderLoadFailed] = []
        for loaded, error in results:
            items.extend(loaded)
            if error is not None:
                failures.append(error)
        return LoadOutcome(items=tuple(items), failures=tuple(failures))

    def run_action(self, target: ActionTarget, item: Item) -> None:
        """Spawn the action bound to ``target`` for ``item`` without waiting.

        Raises ``ActionSpawnFailed`` when the command cannot be started.
        """
        argv, input_text = build_action_command(target, item)
        self._spawn(argv, input_text=input_text)

    def refresh_stale(self, providers: Sequence[ProviderConfig]) -> int:
        """Reload caching providers whose entry is missing or expired.

        Returns how many providers were reloaded successfully.
        """
        stale = [provider for provider in providers if provider.caches and self.cached(provider) is None]
        if not stale:
            return 0
        outcome = self.load_many(stale)
        return len(stale) - len(outcome.failures)

    def start_background_refresh(self, providers: Sequence[ProviderConfig]) -> threading.Thread | None:
        """Keep caching providers warm on a daemon thread.

        Refreshes immediately, then every smallest cache interval until
        ``stop_background_refresh`` is called.
        """
        caching = [provider for provider in providers if provider.caches]
        if not caching:
            return None
        period = min(provider.cache_interval for provider in caching)
        stop = threading.Event()
        self._refresh_stop = stop

        def worker() -> None:
            while not stop.is_set():
                self.refresh_stale(caching)
                stop.wait(period)

        thread = threading.Thread(target=worker, name="heats-cache-refresh", daemon=True)
        thread.start()
        return thread

    def stop_background_refresh(self) -> None:
        if self._refresh_stop is not None:
            self._refresh_stop.set()
            self._refresh_stop = None
