"""Persistent JSON config helpers.

Reads diff context, history sizes, timing, theme, and key-binding overrides.
All access is defensive: malformed or missing config falls back safely.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from platformdirs import user_config_dir

logger = logging.getLogger(__name__)

APP_NAME = "lazyrepo"
CONFIG_FILENAME = "config.json"
DEFAULT_CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME
CONFIG_PATH = DEFAULT_CONFIG_PATH


@dataclass(frozen=True)
class AppConfig:
    context_lines: int = 3
    recent_commits: int = 10
    log_page_size: int = 256
    chord_timeout_ms: int = 1500
    refresh_on_file_change: bool = True
    watch_poll_seconds: float = 1.0
    theme: str | None = None
    style: str = "monokai"
    bindings: tuple[object, ...] = field(default=())


def load_config(path: Path | None = None) -> dict[str, object]:
    """Load the persisted JSON config object.

    Returns an empty dict when the file is missing, unreadable, malformed, or
    does not decode to a top-level JSON object.
    """
    config_path = CONFIG_PATH if path is None else path
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as exc:
        logger.warning("ignoring unreadable config %s: %s", config_path, exc)
        return {}
    return data if isinstance(data, dict) else {}


def _coerce_int(value: object, default: int, minimum: int = 0) -> int:
    """Booleans and non-integers are treated as invalid."""
    if isinstance(value, bool) or not isinstance(value, int):
        return default
    return max(minimum, value)


def _coerce_float(value: object, default: float, minimum: float = 0.0) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return max(minimum, float(value))


def _coerce_name(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped if stripped else None


def config_from_dict(data: dict[str, object]) -> AppConfig:
    defaults = AppConfig()
    refresh = data.get("refresh_on_file_change")
    bindings = data.get("bindings")
    return AppConfig(
        context_lines=_coerce_int(data.get("context_lines"), defaults.context_lines),
        recent_commits=_coerce_int(data.get("recent_commits"), defaults.recent_commits),
        log_page_size=_coerce_int(data.get("log_page_size"), defaults.log_page_size, minimum=1),
        chord_timeout_ms=_coerce_int(data.get("chord_timeout_ms"), defaults.chord_timeout_ms, minimum=100),
        refresh_on_file_change=refresh if isinstance(refresh, bool) else defaults.refresh_on_file_change,
        watch_poll_seconds=_coerce_float(data.get("watch_poll_seconds"), defaults.watch_poll_seconds, minimum=0.1),
        theme=_coerce_name(data.get("theme")),
        style=_coerce_name(data.get("style")) or defaults.style,
        bindings=tuple(bindings) if isinstance(bindings, list) else (),
    )


def load_app_config(path: Path | None = None) -> AppConfig:
    return config_from_dict(load_config(path))


__all__ = [
    "AppConfig",
    "CONFIG_PATH",
    "config_from_dict",
    "load_app_config",
    "load_config",
]
