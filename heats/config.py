"""Launcher configuration: window placement, modes, providers and evaluators.

The file is TOML. A missing or unparsable file yields
the built-in defaults, and individual malformed entries are dropped with a
warning so the daemon always starts from a validated ``Config``.
"""

from __future__ import annotations

import logging
import sys
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from platformdirs import user_config_dir

from .errors import ConfigError

logger = logging.getLogger(__name__)

APP_NAME = "heats"
CONFIG_FILENAME = "config.toml"
DEFAULT_CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME
XDG_CONFIG_PATH = Path.home() / ".config" / APP_NAME / CONFIG_FILENAME
CONFIG_PATH = DEFAULT_CONFIG_PATH

DEFAULT_SOURCE_TIMEOUT_SECONDS = 2.0
WINDOW_MODES = ("normal", "fixed")
INPUT_MODES = ("stdin", "arg")


@dataclass(frozen=True)
class WindowConfig:
    width: float = 600.0
    height: float = 400.0
    mode: str = "normal"
    # Substring of a display name; only consulted in fixed mode.
    display: str = ""


@dataclass(frozen=True)
class ProviderConfig:
    """A source command bundled with the action run on selection."""

    name: str
    source: tuple[str, ...]
    action: tuple[str, ...] = ()
    field: str = "data"
    cache_interval: float = 0.0
    timeout: float = DEFAULT_SOURCE_TIMEOUT_SECONDS
    action_input: str = "arg"

    @property
    def caches(self) -> bool:
        return self.cache_interval > 0


@dataclass(frozen=True)
class EvaluatorConfig:
    """A query-driven source: re-run for every query, results listed first."""

    name: str
    source: tuple[str, ...]
    action: tuple[str, ...] = ()
    input: str = "stdin"
    action_input: str = "stdin"
    field: str = "data"
    timeout: float = DEFAULT_SOURCE_TIMEOUT_SECONDS


@dataclass(frozen=True)
class ModeConfig:
    name: str
    hotkey: str
    providers: tuple[str, ...] = ()
    evaluators: tuple[str, ...] = ()


@dataclass(frozen=True)
class Config:
    window: WindowConfig = field(default_factory=WindowConfig)
    modes: tuple[ModeConfig, ...] = ()
    providers: dict[str, ProviderConfig] = field(default_factory=dict)
    evaluators: dict[str, EvaluatorConfig] = field(default_factory=dict)

    def mode(self, name: str) -> ModeConfig | None:
        for mode in self.modes:
            if mode.name == name:
                return mode
        return None

    def mode_providers(self, mode: ModeConfig) -> list[ProviderConfig]:
        return [self.providers[name] for name in mode.providers if name in self.providers]

    def mode_evaluators(self, mode: ModeConfig) -> list[EvaluatorConfig]:
        return [self.evaluators[name] for name in mode.evaluators if name in self.evaluators]


def default_config() -> Config:
    """Built-in configuration used when no usable file exists."""
    if sys.platform == "darwin":
        open_action: tuple[str, ...] = ("open", "-a")
        open_field = "data.path"
        copy_action: tuple[str, ...] = ("pbcopy",)
    else:
        open_action = ("gtk-launch",)
        open_field = "data.id"
        copy_action = ("xclip", "-selection", "clipboard")

    return Config(
        window=WindowConfig(),
        modes=(
            ModeConfig(
                name="launcher",
                hotkey="Cmd+Semicolon",
                providers=("open-apps",),
                evaluators=("calculator",),
            ),
        ),
        providers={
            "open-apps": ProviderConfig(
                name="open-apps",
                source=("heats-list-apps",),
                action=open_action,
                field=open_field,
                cache_interval=60.0,
            ),
        },
        evaluators={
            "calculator": EvaluatorConfig(
                name="calculator",
                source=("heats-eval-calc",),
                action=copy_action,
            ),
        },
    )


def _coerce_argv(value: object, key: str) -> tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not all(isinstance(part, str) for part in value):
        raise ConfigError(f"{key} must be a list of strings")
    return tuple(value)


def _coerce_seconds(value: object, key: str, default: float) -> float:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{key} must be a number")
    if value < 0:
        raise ConfigError(f"{key} must be >= 0")
    return float(value)


def _coerce_choice(value: object, key: str, choices: tuple[str, ...], default: str) -> str:
    if value is None:
        return default
    if not isinstance(value, str) or value.lower() not in choices:
        raise ConfigError(f"{key} must be one of {', '.join(choices)}")
    return value.lower()


def _coerce_str(value: object, key: str, default: str) -> str:
    if value is None:
        return default
    if not isinstance(value, str):
        raise ConfigError(f"{key} must be a string")
    return value


def parse_provider(name: str, raw: object) -> ProviderConfig:
    """Validate one ``[provider.<name>]`` table."""
    if not isinstance(raw, dict):
        raise ConfigError(f"provider {name!r} must be a table")
    source = _coerce_argv(raw.get("source"), f"provider.{name}.source")
    if not source:
        raise ConfigError(f"provider.{name}.source must not be empty")
    return ProviderConfig(
        name=name,
        source=source,
        action=_coerce_argv(raw.get("action", []), f"provider.{name}.action"),
        field=_coerce_str(raw.get("field"), f"provider.{name}.field", "data"),
        cache_interval=_coerce_seconds(raw.get("cache_interval"), f"provider.{name}.cache_interval", 0.0),
        timeout=_coerce_seconds(raw.get("timeout"), f"provider.{name}.timeout", DEFAULT_SOURCE_TIMEOUT_SECONDS),
        action_input=_coerce_choice(raw.get("action_input"), f"provider.{name}.action_input", INPUT_MODES, "arg"),
    )


def parse_evaluator(name: str, raw: object) -> EvaluatorConfig:
    """Validate one ``[evaluator.<name>]`` table."""
    if not isinstance(raw, dict):
        raise ConfigError(f"evaluator {name!r} must be a table")
    source = _coerce_argv(raw.get("source"), f"evaluator.{name}.source")
    if not source:
        raise ConfigError(f"evaluator.{name}.source must not be empty")
    return EvaluatorConfig(
        name=name,
        source=source,
        action=_coerce_argv(raw.get("action", []), f"evaluator.{name}.action"),
        input=_coerce_choice(raw.get("input"), f"evaluator.{name}.input", INPUT_MODES, "stdin"),
        action_input=_coerce_choice(
            raw.get("action_input"), f"evaluator.{name}.action_input", INPUT_MODES, "stdin"
        ),
        field=_coerce_str(raw.get("field"), f"evaluator.{name}.field", "data"),
        timeout=_coerce_seconds(raw.get("timeout"), f"evaluator.{name}.timeout", DEFAULT_SOURCE_TIMEOUT_SECONDS),
    )


def parse_mode(raw: object) -> ModeConfig:
    """Validate one ``[[mode]]`` entry."""
    if not isinstance(raw, dict):
        raise ConfigError("mode entries must be tables")
    name = raw.get("name")
    hotkey = raw.get("hotkey")
    if not isinstance(name, str) or not name:
        raise ConfigError("mode.name must be a non-empty string")
    if not isinstance(hotkey, str) or not hotkey:
        raise ConfigError(f"mode {name!r} needs a hotkey string")
    return ModeConfig(
        name=name,
        hotkey=hotkey,
        providers=_coerce_argv(raw.get("providers", []), f"mode.{name}.providers"),
        evaluators=_coerce_argv(raw.get("evaluators", []), f"mode.{name}.evaluators"),
    )


def parse_window(raw: object) -> WindowConfig:
    if raw is None:
        return WindowConfig()
    if not isinstance(raw, dict):
        raise ConfigError("window must be a table")
    defaults = WindowConfig()
    return WindowConfig(
        width=_coerce_seconds(raw.get("width"), "window.width", defaults.width),
        height=_coerce_seconds(raw.get("height"), "window.height", defaults.height),
        mode=_coerce_choice(raw.get("mode"), "window.mode", WINDOW_MODES, defaults.mode),
        display=_coerce_str(raw.get("display"), "window.display", defaults.display),
    )


def config_from_dict(data: dict[str, object]) -> Config:
    """Build a ``Config`` from decoded TOML, dropping invalid entries.

    Sections that are absent fall back to the defaults. Invalid providers,
    evaluators and modes are skipped with a warning, and mode references to
    unknown providers or evaluators are removed.
    """
    defaults = default_config()

    try:
        window = parse_window(data.get("window"))
    except ConfigError as exc:
        logger.warning("Ignoring window config: %s", exc)
        window = defaults.window

    providers = dict(defaults.providers)
    raw_providers = data.get("provider")
    if isinstance(raw_providers, dict):
        providers = {}
        for name, raw in raw_providers.items():
            try:
                providers[name] = parse_provider(name, raw)
            except ConfigError as exc:
                logger.warning("Skipping provider %r: %s", name, exc)

    evaluators = dict(defaults.evaluators)
    raw_evaluators = data.get("evaluator")
    if isinstance(raw_evaluators, dict):
        evaluators = {}
        for name, raw in raw_evaluators.items():
            try:
                evaluators[name] = parse_evaluator(name, raw)
            except ConfigError as exc:
                logger.warning("Skipping evaluator %r: %s", name, exc)

    modes = defaults.modes
    raw_modes = data.get("mode")
    if isinstance(raw_modes, list):
        parsed: list[ModeConfig] = []
        seen: set[str] = set()
        for raw in raw_modes:
            try:
                mode = parse_mode(raw)
            except ConfigError as exc:
                logger.warning("Skipping mode: %s", exc)
                continue
            if mode.name in seen:
                logger.warning("Skipping duplicate mode %r", mode.name)
                continue
            seen.add(mode.name)
            parsed.append(mode)
        modes = tuple(parsed)

    checked: list[ModeConfig] = []
    for mode in modes:
        known_providers = tuple(name for name in mode.providers if name in providers)
        known_evaluators = tuple(name for name in mode.evaluators if name in evaluators)
        for name in set(mode.providers) - set(known_providers):
            logger.warning("Mode %r references unknown provider %r", mode.name, name)
        for name in set(mode.evaluators) - set(known_evaluators):
            logger.warning("Mode %r references unknown evaluator %r", mode.name, name)
        checked.append(
            ModeConfig(
                name=mode.name,
                hotkey=mode.hotkey,
                providers=known_providers,
                evaluators=known_evaluators,
            )
        )

    return Config(window=window, modes=tuple(checked), providers=providers, evaluators=evaluators)


def _load_config_path() -> Path:
    """Return the preferred config path, falling back to ``~/.config/heats``."""
    if CONFIG_PATH.exists():
        return CONFIG_PATH
    if CONFIG_PATH == DEFAULT_CONFIG_PATH and XDG_CONFIG_PATH.exists():
        return XDG_CONFIG_PATH
    return CONFIG_PATH


def load_config(path: Path | None = None) -> Config:
    """Load and validate the config file.

    Returns the built-in defaults when the file is missing, unreadable or not
    valid TOML.
    """
    config_path = path if path is not None else _load_config_path()
    if not config_path.exists():
        logger.info("No config file found at %s, using defaults", config_path)
        return default_config()
    try:
        data = tomllib.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError) as exc:
        logger.warning("Failed to read config %s: %s, using defaults", config_path, exc)
        return default_config()
    logger.info("Loaded config from %s", config_path)
    return config_from_dict(data)
