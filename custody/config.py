"""
Registry configuration.

Settings come from, in increasing precedence: built-in defaults, a TOML file
(the `[registry]` table of custody.toml), environment variables, and explicit
overrides (CLI flags).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping

from .errors import ConfigError

CONFIG_FILENAME = "custody.toml"
ENV_HOME = "CUSTODY_HOME"
ENV_LOG_LEVEL = "CUSTODY_LOG_LEVEL"


@dataclass(frozen=True)
class RegistryConfig:
    data_dir: Path = Path(".custody")
    persist: bool = True  # rewrite state.json after each transition
    journal: bool = True  # append events to events.jsonl
    log_level: str = "WARNING"

    @property
    def state_path(self) -> Path:
        return self.data_dir / "state.json"

    @property
    def journal_path(self) -> Path:
        return self.data_dir / "events.jsonl"


def _coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    raise ConfigError(f"registry.{key} must be a boolean, got {value!r}")


def _coerce_level(value: Any) -> str:
    level = str(value).strip().upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigError(f"Unknown log level: {value!r}")
    return level


def _apply(config: RegistryConfig, values: Mapping[str, Any], *, base_dir: Path | None = None) -> RegistryConfig:
    changes: dict[str, Any] = {}
    if "data_dir" in values and values["data_dir"] is not None:
        raw = values["data_dir"]
        if not isinstance(raw, (str, Path)):
            raise ConfigError(f"registry.data_dir must be a path, got {raw!r}")
        data_dir = Path(raw).expanduser()
        if base_dir is not None and not data_dir.is_absolute():
            data_dir = base_dir / data_dir
        changes["data_dir"] = data_dir
    for key in ("persist", "journal"):
        if key in values and values[key] is not None:
            changes[key] = _coerce_bool(key, values[key])
    if "log_level" in values and values["log_level"] is not None:
        changes["log_level"] = _coerce_level(values["log_level"])
    return replace(config, **changes)


def load_config_file(path: Path) -> dict[str, Any]:
    """Read the `[registry]` table from a TOML file."""
    import tomllib

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Malformed config {path}: {e}") from e

    table = data.get("registry", {})
    if not isinstance(table, dict):
        raise ConfigError(f"[registry] in {path} must be a table")
    return table


def load_config(
    path: Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> RegistryConfig:
    """
    Resolve configuration.

    Args:
        path: Explicit config file. When None, ./custody.toml is used if present.
        env: Environment mapping (defaults to os.environ)
        overrides: Highest-precedence values, typically CLI flags (None = unset)

    Returns:
        Resolved RegistryConfig
    """
    env = os.environ if env is None else env
    config = RegistryConfig()

    if path is None:
        candidate = Path.cwd() / CONFIG_FILENAME
        path = candidate if candidate.is_file() else None
    elif not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    if path is not None:
        config = _apply(config, load_config_file(path), base_dir=path.resolve().parent)

    env_values: dict[str, Any] = {}
    if env.get(ENV_HOME):
        env_values["data_dir"] = env[ENV_HOME]
    if env.get(ENV_LOG_LEVEL):
        env_values["log_level"] = env[ENV_LOG_LEVEL]
    config = _apply(config, env_values)

    if overrides:
        config = _apply(config, overrides)
    return config
