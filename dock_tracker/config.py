"""Tracker configuration: JSON file plus environment overrides."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple

from dock_tracker.backends.base import DEFAULT_POLL_TIMEOUT
from dock_tracker.backends.kwin import DEFAULT_SCRIPT_NAME
from dock_tracker.scheduler import DEFAULT_POLL_INTERVAL

CONFIG_ENV_VAR = "DOCK_TRACKER_CONFIG"
CONFIG_DIR_NAME = "dock-tracker"
CONFIG_FILENAME = "tracker.json"

POLL_INTERVAL_MIN = 0.25
POLL_INTERVAL_MAX = 60.0
POLL_TIMEOUT_MIN = 0.1
POLL_TIMEOUT_MAX = 30.0
LOG_RETENTION_MIN = 1
LOG_RETENTION_MAX = 20

_TRUE_TOKENS = {"1", "true", "yes", "on"}
_FALSE_TOKENS = {"0", "false", "no", "off"}

_LOGGER = logging.getLogger("DockTracker.Config")


@dataclass(frozen=True)
class TrackerConfig:
    poll_interval: float = DEFAULT_POLL_INTERVAL
    poll_timeout: float = DEFAULT_POLL_TIMEOUT
    backend: Optional[str] = None
    hyprland_runtime_dirs: Tuple[str, ...] = ()
    kwin_script_name: str = DEFAULT_SCRIPT_NAME
    debug: bool = False
    log_retention: int = 5
    log_max_bytes: int = 512 * 1024


def default_config_path(env: Optional[Mapping[str, str]] = None) -> Path:
    env = os.environ if env is None else env
    override = env.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    config_home = env.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(config_home) / CONFIG_DIR_NAME / CONFIG_FILENAME


def _coerce_float(value: Any, minimum: float, maximum: float) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return None
    if numeric != numeric:  # NaN
        return None
    return min(max(numeric, minimum), maximum)


def _coerce_retention(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        numeric = int(value)
    except (TypeError, ValueError):
        return None
    if numeric <= 0:
        return LOG_RETENTION_MIN
    if numeric > LOG_RETENTION_MAX:
        return LOG_RETENTION_MAX
    return numeric


def _coerce_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        token = value.strip().lower()
        if token in _TRUE_TOKENS:
            return True
        if token in _FALSE_TOKENS:
            return False
    return None


def _coerce_text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    token = value.strip()
    return token or None


def _read_json(path: Path) -> Mapping[str, Any]:
    try:
        raw_text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as exc:
        _LOGGER.warning("Cannot read tracker config %s: %s", path, exc)
        return {}
    try:
        data = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        _LOGGER.warning("Ignoring malformed tracker config %s: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        _LOGGER.warning("Tracker config %s is not a JSON object; using defaults", path)
        return {}
    return data


def _apply_mapping(config: TrackerConfig, data: Mapping[str, Any]) -> TrackerConfig:
    changes: dict[str, Any] = {}
    interval = _coerce_float(data.get("poll_interval"), POLL_INTERVAL_MIN, POLL_INTERVAL_MAX)
    if interval is not None:
        changes["poll_interval"] = interval
    timeout = _coerce_float(data.get("poll_timeout"), POLL_TIMEOUT_MIN, POLL_TIMEOUT_MAX)
    if timeout is not None:
        changes["poll_timeout"] = timeout
    backend = _coerce_text(data.get("backend"))
    if backend is not None:
        changes["backend"] = backend
    dirs = data.get("hyprland_runtime_dirs")
    if isinstance(dirs, (list, tuple)):
        changes["hyprland_runtime_dirs"] = tuple(str(item) for item in dirs if isinstance(item, str) and item)
    script_name = _coerce_text(data.get("kwin_script_name"))
    if script_name is not None:
        changes["kwin_script_name"] = script_name
    debug = _coerce_bool(data.get("debug"))
    if debug is not None:
        changes["debug"] = debug
    retention = _coerce_retention(data.get("log_retention"))
    if retention is not None:
        changes["log_retention"] = retention
    max_bytes = data.get("log_max_bytes")
    if isinstance(max_bytes, int) and not isinstance(max_bytes, bool) and max_bytes > 0:
        changes["log_max_bytes"] = max_bytes
    return replace(config, **changes) if changes else config


def _env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key, env_name in (
        ("backend", "DOCK_TRACKER_BACKEND"),
        ("poll_interval", "DOCK_TRACKER_POLL_INTERVAL"),
        ("poll_timeout", "DOCK_TRACKER_POLL_TIMEOUT"),
        ("debug", "DOCK_TRACKER_DEBUG"),
    ):
        value = env.get(env_name)
        if value is not None and value.strip():
            mapping[key] = value
    return mapping


def load_tracker_config(
    path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> TrackerConfig:
    """Build the effective config; environment variables win over the file."""
    env = os.environ if env is None else env
    config_path = path if path is not None else default_config_path(env)
    config = _apply_mapping(TrackerConfig(), _read_json(config_path))
    overrides = _env_overrides(env)
    if overrides:
        _LOGGER.debug("Applying environment overrides: %s", ", ".join(sorted(overrides)))
        config = _apply_mapping(config, overrides)
    return config
