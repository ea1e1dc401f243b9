"""Public window tracker: detection, backend, registry and scheduler in one handle."""
from __future__ import annotations

import logging
import os
from typing import List, Mapping, Optional

from dock_tracker.backends import create_backend
from dock_tracker.backends.base import WindowBackend
from dock_tracker.config import TrackerConfig, load_tracker_config
from dock_tracker.environment import resolve_backend_kind
from dock_tracker.models import BackendKind, RegistrySnapshot, WindowRecord
from dock_tracker.registry import WindowRegistry
from dock_tracker.scheduler import DEFAULT_POLL_INTERVAL, PollScheduler

_LOGGER = logging.getLogger("DockTracker")


class WindowTracker:
    """Answers "how many windows does app X have" for the dock UI.

    All query methods read the registry only and never block on I/O; the
    backend is driven exclusively by the scheduler's poll thread. The last
    snapshot stays readable after :meth:`stop`.
    """

    def __init__(
        self,
        backend: WindowBackend,
        *,
        registry: Optional[WindowRegistry] = None,
        interval: Optional[float] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._logger = logger or _LOGGER
        self._backend = backend
        self._kind = backend.kind
        self._registry = registry if registry is not None else WindowRegistry()
        self._scheduler = PollScheduler(
            backend,
            self._registry,
            interval=interval if interval is not None else DEFAULT_POLL_INTERVAL,
            logger=self._logger.getChild("Scheduler"),
        )

    @property
    def registry(self) -> WindowRegistry:
        return self._registry

    @property
    def scheduler(self) -> PollScheduler:
        return self._scheduler

    # Lifecycle ------------------------------------------------------------

    def start(self) -> None:
        if self._kind is BackendKind.UNKNOWN and not self._scheduler.is_running():
            self._logger.info("Unknown desktop environment; window counts will only come from overrides")
        self._scheduler.start()

    def stop(self) -> None:
        self._scheduler.stop()

    def is_running(self) -> bool:
        return self._scheduler.is_running()

    def poll_now(self) -> bool:
        """Run one poll synchronously on the calling thread."""
        return self._scheduler.tick()

    # Queries --------------------------------------------------------------

    def get_backend_kind(self) -> BackendKind:
        return self._kind

    def get_window_count(self, app_id: str) -> int:
        return self._registry.get_window_count(app_id)

    def get_windows_for_app(self, app_id: str) -> List[WindowRecord]:
        return self._registry.get_windows_for_app(app_id)

    def get_all_windows(self) -> List[WindowRecord]:
        return self._registry.get_all_windows()

    def set_window_count(self, app_id: str, count: int) -> None:
        self._registry.set_window_count(app_id, count)

    def snapshot(self) -> RegistrySnapshot:
        return self._registry.snapshot()


def create_window_tracker(
    config: Optional[TrackerConfig] = None,
    env: Optional[Mapping[str, str]] = None,
    logger: Optional[logging.Logger] = None,
) -> WindowTracker:
    """Detect the session once and build a tracker for it."""
    env = os.environ if env is None else env
    config = config if config is not None else load_tracker_config(env=env)
    log = logger or _LOGGER
    kind = resolve_backend_kind(config.backend, env, log.getChild("Environment"))
    backend = create_backend(
        kind,
        env,
        timeout=config.poll_timeout,
        hyprland_runtime_dirs=config.hyprland_runtime_dirs,
        kwin_script_name=config.kwin_script_name,
        logger=log.getChild("Backend"),
    )
    return WindowTracker(backend, interval=config.poll_interval, logger=log)
