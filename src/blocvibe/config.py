"""
Editor configuration.

Loaded from, in increasing priority:
1. Defaults (this file)
2. ``blocvibe.toml`` in the project directory
3. ``BLOCVIBE_*`` environment variables
"""

from __future__ import annotations

import contextlib
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from blocvibe.core.engine import DEFAULT_WRAPPER_STYLES
from blocvibe.core.errors import ConfigError
from blocvibe.render.markup import DEFAULT_HIGHLIGHT_COLOR

CONFIG_FILENAME = "blocvibe.toml"


@dataclass
class RenderConfig:
    """Canvas rendering settings."""

    debounce_ms: int = 500  # trailing delay for renders during drag bursts
    highlight_color: str = DEFAULT_HIGHLIGHT_COLOR
    page_css: str = ""


@dataclass
class PersistenceConfig:
    """Project storage settings."""

    store_dir: str = ".blocvibe/projects"
    save_delay_ms: int = 500  # 0 = submit every save immediately (still off-thread)


@dataclass
class WrapConfig:
    """Containers created by wrap-in-div."""

    styles: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_WRAPPER_STYLES))


@dataclass
class LoggingConfig:
    level: str = "INFO"
    log_dir: str = ".blocvibe/logs"


@dataclass
class EditorConfig:
    """Root config with all settings."""

    render: RenderConfig = field(default_factory=RenderConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    wrap: WrapConfig = field(default_factory=WrapConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def debounce_seconds(self) -> float:
        return self.render.debounce_ms / 1000

    @property
    def save_delay_seconds(self) -> float:
        return self.persistence.save_delay_ms / 1000


def _int(section: str, key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigError(f"[{section}] {key} must be a non-negative integer, got {value!r}")
    return value


def _str(section: str, key: str, value: Any) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"[{section}] {key} must be a string, got {value!r}")
    return value


def _apply_toml(config: EditorConfig, data: dict[str, Any]) -> EditorConfig:
    """Apply parsed TOML data to config."""
    if "render" in data:
        r = data["render"]
        if "debounce_ms" in r:
            config.render.debounce_ms = _int("render", "debounce_ms", r["debounce_ms"])
        if "highlight_color" in r:
            config.render.highlight_color = _str("render", "highlight_color", r["highlight_color"])
        if "page_css" in r:
            config.render.page_css = _str("render", "page_css", r["page_css"])

    if "persistence" in data:
        p = data["persistence"]
        if "store_dir" in p:
            config.persistence.store_dir = _str("persistence", "store_dir", p["store_dir"])
        if "save_delay_ms" in p:
            config.persistence.save_delay_ms = _int(
                "persistence", "save_delay_ms", p["save_delay_ms"]
            )

    if "wrap" in data and "styles" in data["wrap"]:
        styles = data["wrap"]["styles"]
        if not isinstance(styles, dict):
            raise ConfigError("[wrap] styles must be a table")
        config.wrap.styles = {
            _str("wrap.styles", "key", k): _str("wrap.styles", k, v) for k, v in styles.items()
        }

    if "logging" in data:
        lg = data["logging"]
        if "level" in lg:
            config.logging.level = _str("logging", "level", lg["level"]).upper()
        if "log_dir" in lg:
            config.logging.log_dir = _str("logging", "log_dir", lg["log_dir"])

    return config


def _apply_env(config: EditorConfig) -> EditorConfig:
    """Apply environment variable overrides. Unparsable values are ignored."""
    env_map: dict[str, tuple[str, str, type]] = {
        "BLOCVIBE_DEBOUNCE_MS": ("render", "debounce_ms", int),
        "BLOCVIBE_HIGHLIGHT_COLOR": ("render", "highlight_color", str),
        "BLOCVIBE_STORE_DIR": ("persistence", "store_dir", str),
        "BLOCVIBE_SAVE_DELAY_MS": ("persistence", "save_delay_ms", int),
        "BLOCVIBE_LOG_LEVEL": ("logging", "level", str),
        "BLOCVIBE_LOG_DIR": ("logging", "log_dir", str),
    }

    for env_key, (section, attr, conv) in env_map.items():
        val = os.environ.get(env_key)
        if val is None:
            continue
        with contextlib.suppress(ValueError):
            converted = conv(val)
            if conv is int and converted < 0:
                continue
            if attr == "level":
                converted = converted.upper()
            setattr(getattr(config, section), attr, converted)

    return config


def load_config(project_dir: Path | str | None = None) -> EditorConfig:
    """
    Load configuration for a project directory.

    Args:
        project_dir: Directory containing ``blocvibe.toml`` (default: cwd).

    Raises:
        ConfigError: if the config file exists but is invalid
    """
    config = EditorConfig()
    path = Path(project_dir or ".") / CONFIG_FILENAME

    if path.exists():
        try:
            data = tomllib.loads(path.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigError(f"Cannot read {path}: {e}") from e
        config = _apply_toml(config, data)

    return _apply_env(config)
