"""GNOME backend: ``org.gnome.Shell.Introspect.GetWindows``."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Tuple

from dock_tracker.backends.base import DEFAULT_POLL_TIMEOUT, coerce_text
from dock_tracker.backends.dbus_session import BusFactory, SessionBusProvider
from dock_tracker.errors import ConnectionFailure, ProtocolFailure
from dock_tracker.models import BackendKind, WindowRecord

INTROSPECT_SERVICE = "org.gnome.Shell.Introspect"
INTROSPECT_PATH = "/org/gnome/Shell/Introspect"


def parse_windows(reply: Any) -> Tuple[WindowRecord, ...]:
    """Convert a ``a{ta{sv}}`` GetWindows reply into records.

    Windows whose application id is missing or not a string are excluded
    rather than counted under a placeholder.
    """
    if not isinstance(reply, Mapping):
        raise ProtocolFailure(
            f"GetWindows returned {type(reply).__name__}, expected a mapping", backend=BackendKind.GNOME
        )
    records = []
    for window_id, properties in reply.items():
        if not isinstance(properties, Mapping):
            continue
        app_id = coerce_text(properties.get("app-id")) or coerce_text(properties.get("wm-class"))
        if not app_id:
            continue
        records.append(
            WindowRecord(
                id=str(window_id),
                title=coerce_text(properties.get("title")) or "",
                app_id=app_id,
                is_focused=bool(properties.get("has-focus", False)),
            )
        )
    return tuple(records)


class GnomeBackend:
    """Ask GNOME Shell for its window list over D-Bus."""

    kind = BackendKind.GNOME

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_POLL_TIMEOUT,
        bus_factory: Optional[BusFactory] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._timeout = timeout
        self._logger = logger or logging.getLogger("DockTracker.Backend.Gnome")
        self._bus = SessionBusProvider(self.kind, self._logger, bus_factory)
        self._introspect: Any = None

    def poll(self) -> Tuple[WindowRecord, ...]:
        if self._introspect is None:
            self._introspect = self._bus.proxy(INTROSPECT_SERVICE, INTROSPECT_PATH, timeout=self._timeout)
        try:
            reply = self._introspect.GetWindows(timeout=self._timeout)
        except Exception as exc:
            # Shell restarts invalidate the proxy; rebuild it next time.
            self._introspect = None
            raise ConnectionFailure(f"GetWindows failed: {exc}", backend=self.kind) from exc
        records = parse_windows(reply)
        self._logger.debug("GNOME: found %d windows", len(records))
        return records
