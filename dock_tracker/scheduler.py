"""Background poll loop that feeds the window registry."""
from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from dock_tracker.backends.base import WindowBackend
from dock_tracker.errors import PollError
from dock_tracker.models import BackendKind
from dock_tracker.registry import WindowRegistry

DEFAULT_POLL_INTERVAL = 2.0


class PollScheduler:
    """Runs ``backend.poll()`` on a fixed interval and swaps in good results.

    Failed polls leave the registry untouched. Polls never overlap: a tick
    that finds another one in flight is skipped. ``stop()`` does not abort a
    poll in flight; its result is discarded instead.
    """

    def __init__(
        self,
        backend: WindowBackend,
        registry: WindowRegistry,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        logger: Optional[logging.Logger] = None,
        thread_factory: Callable[..., threading.Thread] = threading.Thread,
    ) -> None:
        self._backend = backend
        self._registry = registry
        self._interval = max(0.1, float(interval))
        self._logger = logger or logging.getLogger("DockTracker.Scheduler")
        self._thread_factory = thread_factory
        self._thread: Optional[threading.Thread] = None
        self._state_lock = threading.Lock()
        self._in_flight = threading.Lock()
        self._stop_event: Optional[threading.Event] = None
        self._generation = 0
        self._healthy: Optional[bool] = None
        self.poll_count = 0
        self.failure_count = 0
        self.last_error: Optional[BaseException] = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def backend_kind(self) -> BackendKind:
        return self._backend.kind

    def is_running(self) -> bool:
        stop_event = self._stop_event
        return stop_event is not None and not stop_event.is_set()

    def start(self) -> None:
        with self._state_lock:
            if self._stop_event is not None:
                return
            stop_event = threading.Event()
            self._stop_event = stop_event
            thread = self._thread_factory(
                target=self._run, args=(stop_event,), name="DockTracker-Poller", daemon=True
            )
            self._thread = thread
        self._logger.info("Window tracker polling %s every %.1fs", self._backend.kind.value, self._interval)
        thread.start()

    def stop(self, *, timeout: float = 5.0) -> None:
        with self._state_lock:
            stop_event = self._stop_event
            if stop_event is None:
                return
            stop_event.set()
            self._stop_event = None
            self._generation += 1
            thread = self._thread
            self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
            if thread.is_alive():
                self._logger.warning("Poll thread did not exit within %.1fs; it will finish in the background", timeout)
        self._logger.info("Window tracker stopped")

    def tick(self) -> bool:
        """Run one poll now. Returns True when the registry was replaced."""
        if not self._in_flight.acquire(blocking=False):
            self._logger.debug("Previous %s poll still in flight; skipping tick", self._backend.kind.value)
            return False
        try:
            with self._state_lock:
                generation = self._generation
            try:
                records = self._backend.poll()
            except PollError as exc:
                self._record_failure(exc)
                return False
            except Exception as exc:
                self._logger.warning("Unexpected error polling %s backend", self._backend.kind.value, exc_info=True)
                self._record_failure(exc)
                return False
            if records is None:
                return False
            with self._state_lock:
                if generation != self._generation:
                    self._logger.debug("Discarding %s poll result that finished after stop()", self._backend.kind.value)
                    return False
                self._registry.replace(records)
            self.poll_count += 1
            if self._healthy is False:
                self._logger.info("%s window polling recovered", self._backend.kind.value)
            self._healthy = True
            return True
        finally:
            self._in_flight.release()

    # Internal helpers -----------------------------------------------------

    def _record_failure(self, exc: BaseException) -> None:
        self.failure_count += 1
        self.last_error = exc
        if self._healthy is not False:
            self._logger.info("%s window poll failed; keeping last known windows: %s", self._backend.kind.value, exc)
        else:
            self._logger.debug("%s window poll error: %s", self._backend.kind.value, exc)
        self._healthy = False

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            self.tick()
            if stop_event.wait(self._interval):
                break
