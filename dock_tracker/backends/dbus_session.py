"""Lazy pydbus session-bus access shared by the KDE and GNOME backends."""
from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from dock_tracker.errors import ConnectionFailure
from dock_tracker.models import BackendKind

BusFactory = Callable[[], Any]


def _pydbus_session_bus() -> Any:
    from pydbus import SessionBus  # type: ignore

    return SessionBus()


class SessionBusProvider:
    """Connects on first use and reuses the connection across polls."""

    def __init__(
        self,
        kind: BackendKind,
        logger: logging.Logger,
        bus_factory: Optional[BusFactory] = None,
    ) -> None:
        self._kind = kind
        self._logger = logger
        self._factory = bus_factory or _pydbus_session_bus
        self._bus: Any = None
        self._pydbus_available = True
        self._warned = False

    def get(self) -> Any:
        if self._bus is not None:
            return self._bus
        if not self._pydbus_available:
            raise ConnectionFailure("pydbus is not available", backend=self._kind)
        try:
            self._bus = self._factory()
        except ImportError as exc:
            self._pydbus_available = False
            if not self._warned:
                self._logger.warning("pydbus is required for %s window tracking: %s", self._kind.value, exc)
                self._warned = True
            raise ConnectionFailure(f"pydbus is not available: {exc}", backend=self._kind) from exc
        except Exception as exc:
            if not self._warned:
                self._logger.warning("Failed to connect to the D-Bus session bus: %s", exc)
                self._warned = True
            raise ConnectionFailure(f"session bus unavailable: {exc}", backend=self._kind) from exc
        self._warned = False
        return self._bus

    def proxy(self, service: str, object_path: str, *, timeout: Optional[float] = None) -> Any:
        """Return a pydbus proxy; failures surface as ConnectionFailure."""
        bus = self.get()
        try:
            if timeout is None:
                return bus.get(service, object_path)
            return bus.get(service, object_path, timeout=timeout)
        except Exception as exc:
            raise ConnectionFailure(f"{service} {object_path} unavailable: {exc}", backend=self._kind) from exc

    def reset(self) -> None:
        self._bus = None
