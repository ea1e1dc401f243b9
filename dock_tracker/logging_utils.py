"""Rotating-file logging for the DockTracker logger tree."""
from __future__ import annotations

import logging
import os
import tempfile
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Mapping, Optional

from dock_tracker.config import TrackerConfig

LOGGER_NAME = "DockTracker"
LOG_DIR_NAME = "dock-tracker"
LOG_FILENAME = "dock-tracker.log"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def resolve_logs_dir(log_dir_name: str = LOG_DIR_NAME, env: Optional[Mapping[str, str]] = None) -> Path:
    """
    Resolve the directory to store tracker logs.

    Strategy:
    - Use DOCK_TRACKER_LOG_DIR if set.
    - Fall back to XDG state/cache locations, then `cwd/logs/<log_dir_name>`.
    - Final fallback: tempdir/<log_dir_name>.
    """
    env = os.environ if env is None else env
    candidates = []

    env_override = env.get("DOCK_TRACKER_LOG_DIR")
    if env_override:
        candidates.append(Path(env_override).expanduser())

    state_home = Path(env.get("XDG_STATE_HOME") or Path.home() / ".local" / "state")
    cache_home = Path(env.get("XDG_CACHE_HOME") or Path.home() / ".cache")
    candidates.append(state_home / log_dir_name)
    candidates.append(cache_home / log_dir_name)
    candidates.append(Path.cwd() / "logs" / log_dir_name)

    for target in candidates:
        try:
            target.mkdir(parents=True, exist_ok=True)
            return target
        except OSError:
            continue

    temp_fallback = Path(tempfile.gettempdir()) / log_dir_name
    temp_fallback.mkdir(parents=True, exist_ok=True)
    return temp_fallback


def build_rotating_file_handler(
    log_dir: Path,
    filename: str = LOG_FILENAME,
    *,
    retention: int = 5,
    max_bytes: int = 512 * 1024,
    formatter: Optional[logging.Formatter] = None,
) -> logging.Handler:
    """Construct a rotating file handler with sane defaults."""
    retention = max(1, retention)
    backup_count = max(0, retention - 1)
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / filename,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    if formatter is not None:
        handler.setFormatter(formatter)
    return handler


def resolve_log_level(debug_enabled: bool) -> int:
    return logging.DEBUG if debug_enabled else logging.INFO


def configure_logging(
    config: TrackerConfig,
    *,
    log_dir: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> logging.Logger:
    """Attach a rotating file handler to the ``DockTracker`` logger tree.

    Propagation to the root logger is off unless DOCK_TRACKER_PROPAGATE_LOGS
    is truthy, so a host application's handlers do not see duplicates.
    """
    env = os.environ if env is None else env
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(resolve_log_level(config.debug))
    logger.propagate = (env.get("DOCK_TRACKER_PROPAGATE_LOGS") or "").lower() in {"1", "true", "yes", "on"}
    target_dir = log_dir if log_dir is not None else resolve_logs_dir(env=env)
    target_file = os.path.abspath(target_dir / LOG_FILENAME)
    for existing in list(logger.handlers):
        if isinstance(existing, RotatingFileHandler) and existing.baseFilename == target_file:
            return logger
    handler = build_rotating_file_handler(
        target_dir,
        retention=config.log_retention,
        max_bytes=config.log_max_bytes,
        formatter=logging.Formatter(LOG_FORMAT),
    )
    logger.addHandler(handler)
    return logger
