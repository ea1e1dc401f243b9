"""KDE backend: KWin window info over D-Bus with a scripting fallback.

The primary path is a single ``org.kde.KWin.queryWindowInfo`` call. When
that is unavailable, a small KWin script enumerates every client and reports
the result back with ``callDBus`` to an object this backend registers on its
own session-bus connection. Incoming calls are dispatched on a private GLib
main context pushed for the duration of the poll, so the wait stays bounded
and never depends on the UI thread's event loop.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
import time
import uuid
from typing import Any, Callable, Iterable, Mapping, Optional, Tuple

from dock_tracker.backends.base import DEFAULT_POLL_TIMEOUT, coerce_text
from dock_tracker.backends.dbus_session import BusFactory, SessionBusProvider
from dock_tracker.errors import ConnectionFailure, PollError, ProtocolFailure
from dock_tracker.models import BackendKind, WindowRecord

KWIN_SERVICE = "org.kde.KWin"
KWIN_PATH = "/KWin"
SCRIPTING_PATH = "/Scripting"
DEFAULT_SCRIPT_NAME = "docktracker_windows"

SINK_INTERFACE = "org.docktracker.KWinScriptSink"
SINK_PATH = "/org/docktracker/KWinScriptSink"

_SCRIPT_TEMPLATE = """\
(function () {
    var clients = typeof workspace.windowList === "function" ? workspace.windowList() : workspace.clientList();
    var windows = [];
    for (var i = 0; i < clients.length; i++) {
        var c = clients[i];
        if (c.desktopWindow || c.dock) {
            continue;
        }
        windows.push({
            id: String(c.internalId),
            title: String(c.caption || ""),
            app_id: String(c.resourceClass || c.resourceName || ""),
            focused: !!c.active
        });
    }
    callDBus("%(service)s", "%(path)s", "%(interface)s", "Deliver", "%(token)s", JSON.stringify(windows));
})();
"""

ContextFactory = Callable[[], Any]


def _glib_main_context() -> Any:
    from gi.repository import GLib  # type: ignore

    return GLib.MainContext()


def _record_from_properties(properties: Mapping[str, Any]) -> Optional[WindowRecord]:
    app_id = coerce_text(properties.get("resourceClass")) or coerce_text(properties.get("resourceName"))
    if not app_id:
        return None
    return WindowRecord(
        id=coerce_text(properties.get("uuid")) or "",
        title=coerce_text(properties.get("caption")) or "",
        app_id=app_id,
        is_focused=bool(properties.get("active", False)),
    )


def parse_window_info(reply: Any) -> Tuple[WindowRecord, ...]:
    """Parse a ``queryWindowInfo`` reply: one property bag or a list of them."""
    entries: Iterable[Any]
    if isinstance(reply, Mapping):
        entries = [reply]
    elif isinstance(reply, (list, tuple)):
        entries = reply
    else:
        raise ProtocolFailure(
            f"queryWindowInfo returned {type(reply).__name__}", backend=BackendKind.KDE
        )
    records = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        record = _record_from_properties(entry)
        if record is not None:
            records.append(record)
    if not records:
        raise ProtocolFailure("queryWindowInfo reply carried no windows", backend=BackendKind.KDE)
    return tuple(records)


def parse_script_payload(payload: str) -> Tuple[WindowRecord, ...]:
    """Parse the JSON list the enumeration script sends back."""
    try:
        windows = json.loads(payload)
    except (TypeError, json.JSONDecodeError) as exc:
        raise ProtocolFailure(f"invalid script result: {exc}", backend=BackendKind.KDE) from exc
    if not isinstance(windows, list):
        raise ProtocolFailure("script result is not a list", backend=BackendKind.KDE)
    records = []
    for window in windows:
        if not isinstance(window, dict):
            continue
        app_id = coerce_text(window.get("app_id"))
        if not app_id:
            continue
        records.append(
            WindowRecord(
                id=coerce_text(window.get("id")) or "",
                title=coerce_text(window.get("title")) or "",
                app_id=app_id,
                is_focused=bool(window.get("focused", False)),
            )
        )
    return tuple(records)


def render_script(service: str, token: str) -> str:
    return _SCRIPT_TEMPLATE % {
        "service": service,
        "path": SINK_PATH,
        "interface": SINK_INTERFACE,
        "token": token,
    }


class ScriptResultSink:
    """D-Bus object the enumeration script reports back to."""

    dbus = f"""
    <node>
      <interface name='{SINK_INTERFACE}'>
        <method name='Deliver'>
          <arg type='s' name='token' direction='in'/>
          <arg type='s' name='payload' direction='in'/>
        </method>
      </interface>
    </node>
    """

    def __init__(self, token: str) -> None:
        self.token = token
        self.payload: Optional[str] = None

    def Deliver(self, token: str, payload: str) -> None:  # noqa: N802 - D-Bus method name
        # Late replies from a previous poll's script carry a stale token.
        if token == self.token:
            self.payload = payload


class KWinBackend:
    """Window discovery for KDE Plasma sessions."""

    kind = BackendKind.KDE

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_POLL_TIMEOUT,
        script_name: str = DEFAULT_SCRIPT_NAME,
        bus_factory: Optional[BusFactory] = None,
        context_factory: Optional[ContextFactory] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._timeout = timeout
        self._script_name = script_name
        self._logger = logger or logging.getLogger("DockTracker.Backend.KWin")
        self._bus = SessionBusProvider(self.kind, self._logger, bus_factory)
        self._context_factory = context_factory or _glib_main_context
        self._query_supported = True

    def poll(self) -> Tuple[WindowRecord, ...]:
        if self._query_supported:
            try:
                records = self._poll_window_info()
            except PollError as exc:
                self._logger.debug("KWin queryWindowInfo failed (%s); trying script method", exc)
            else:
                self._logger.debug("KWin: found %d windows via queryWindowInfo", len(records))
                return records
        records = self._poll_via_script()
        self._logger.debug("KWin: found %d windows via script", len(records))
        return records

    # Primary path -----------------------------------------------------------

    def _poll_window_info(self) -> Tuple[WindowRecord, ...]:
        kwin = self._bus.proxy(KWIN_SERVICE, KWIN_PATH, timeout=self._timeout)
        try:
            method = kwin.queryWindowInfo
        except AttributeError as exc:
            # Not exported by this KWin build; stop asking.
            self._query_supported = False
            raise ConnectionFailure("queryWindowInfo is not implemented", backend=self.kind) from exc
        try:
            reply = method(timeout=self._timeout)
        except Exception as exc:
            # Interactive on real KWin (window picker, replies after a click).
            self._query_supported = False
            raise ConnectionFailure(f"queryWindowInfo call failed: {exc}", backend=self.kind) from exc
        return parse_window_info(reply)

    # Scripting fallback -----------------------------------------------------

    def _poll_via_script(self) -> Tuple[WindowRecord, ...]:
        bus = self._bus.get()
        scripting = self._bus.proxy(KWIN_SERVICE, SCRIPTING_PATH, timeout=self._timeout)
        try:
            context = self._context_factory()
        except ImportError as exc:
            raise ConnectionFailure(f"GLib bindings unavailable: {exc}", backend=self.kind) from exc

        token = uuid.uuid4().hex
        sink = ScriptResultSink(token)
        deadline = time.monotonic() + self._timeout
        registration = None
        script_path: Optional[str] = None
        loaded = False
        context.push_thread_default()
        try:
            try:
                registration = bus.register_object(SINK_PATH, sink, None)
                unique_name = bus.con.get_unique_name()
            except Exception as exc:
                raise ConnectionFailure(f"cannot register script result object: {exc}", backend=self.kind) from exc
            script_path = self._write_script(render_script(unique_name, token))
            self._unload_script(scripting)
            try:
                script_id = scripting.loadScript(script_path, self._script_name, timeout=self._timeout)
                loaded = True
                scripting.start(timeout=self._timeout)
            except Exception as exc:
                raise ConnectionFailure(f"KWin scripting call failed: {exc}", backend=self.kind) from exc
            self._logger.debug("KWin enumeration script loaded (id=%s)", script_id)
            while sink.payload is None and time.monotonic() < deadline:
                if not context.iteration(False):
                    time.sleep(0.01)
            if sink.payload is None:
                raise ProtocolFailure(
                    f"KWin script did not report back within {self._timeout:.1f}s", backend=self.kind
                )
            return parse_script_payload(sink.payload)
        finally:
            if loaded:
                self._unload_script(scripting)
            if registration is not None:
                try:
                    registration.unregister()
                except Exception as exc:
                    self._logger.debug("Failed to unregister script result object: %s", exc)
            context.pop_thread_default()
            if script_path is not None:
                try:
                    os.unlink(script_path)
                except OSError as exc:
                    self._logger.debug("Failed to remove KWin script %s: %s", script_path, exc)

    def _write_script(self, source: str) -> str:
        try:
            fd, path = tempfile.mkstemp(prefix="docktracker-", suffix=".js")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(source)
        except OSError as exc:
            raise ConnectionFailure(f"cannot write KWin script: {exc}", backend=self.kind) from exc
        return path

    def _unload_script(self, scripting: Any) -> None:
        try:
            scripting.unloadScript(self._script_name, timeout=self._timeout)
        except Exception as exc:
            self._logger.debug("KWin unloadScript(%s) failed: %s", self._script_name, exc)
