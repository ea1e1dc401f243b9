"""Hyprland backend: ``j/clients`` over the compositor's request socket."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import List, Mapping, Optional, Sequence, Tuple

from dock_tracker.backends.base import DEFAULT_POLL_TIMEOUT, UnixSocketClient, coerce_text
from dock_tracker.errors import ConnectionFailure, ProtocolFailure
from dock_tracker.models import BackendKind, WindowRecord

CLIENTS_COMMAND = b"j/clients"
SOCKET_NAMESPACE = "hypr"
SOCKET_NAME = ".socket.sock"
LEGACY_SOCKET_ROOT = "/tmp"


def socket_candidates(signature: str, runtime_dirs: Sequence[str] = ()) -> List[Path]:
    """Possible request-socket locations, newest layout first."""
    roots = [root for root in runtime_dirs if root]
    roots.append(LEGACY_SOCKET_ROOT)
    return [Path(root) / SOCKET_NAMESPACE / signature / SOCKET_NAME for root in roots]


def resolve_socket_path(signature: str, runtime_dirs: Sequence[str] = ()) -> Path:
    candidates = socket_candidates(signature, runtime_dirs)
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return candidates[-1]


def parse_clients(payload: bytes) -> Tuple[WindowRecord, ...]:
    """Turn a ``j/clients`` reply into window records.

    Elements that are not objects or carry no window class are skipped.
    """
    kind = BackendKind.HYPRLAND
    if not payload.strip():
        raise ProtocolFailure("empty clients reply", backend=kind)
    try:
        clients = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError, RecursionError) as exc:
        raise ProtocolFailure(f"invalid clients JSON: {exc}", backend=kind) from exc
    if not isinstance(clients, list):
        raise ProtocolFailure(f"clients reply is {type(clients).__name__}, expected array", backend=kind)

    records = []
    for client in clients:
        if not isinstance(client, dict):
            continue
        app_id = coerce_text(client.get("class"))
        if not app_id:
            continue
        address = coerce_text(client.get("address")) or ""
        title = coerce_text(client.get("title")) or ""
        records.append(
            WindowRecord(
                id=address,
                title=title,
                app_id=app_id,
                is_focused=client.get("focusHistoryID") == 0,
            )
        )
    return tuple(records)


class HyprlandBackend:
    """Query Hyprland's IPC socket directly instead of shelling out to hyprctl."""

    kind = BackendKind.HYPRLAND

    def __init__(
        self,
        signature: str,
        *,
        runtime_dirs: Sequence[str] = (),
        timeout: float = DEFAULT_POLL_TIMEOUT,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._signature = signature
        self._runtime_dirs = tuple(runtime_dirs)
        self._logger = logger or logging.getLogger("DockTracker.Backend.Hyprland")
        self._client = UnixSocketClient(self.kind, self._logger, timeout)

    @classmethod
    def from_environment(
        cls,
        env: Mapping[str, str],
        *,
        runtime_dirs: Sequence[str] = (),
        timeout: float = DEFAULT_POLL_TIMEOUT,
        logger: Optional[logging.Logger] = None,
    ) -> "HyprlandBackend":
        signature = env.get("HYPRLAND_INSTANCE_SIGNATURE") or ""
        dirs = list(runtime_dirs)
        if not dirs and env.get("XDG_RUNTIME_DIR"):
            dirs.append(env["XDG_RUNTIME_DIR"])
        return cls(signature, runtime_dirs=dirs, timeout=timeout, logger=logger)

    @property
    def socket_path(self) -> Path:
        return resolve_socket_path(self._signature, self._runtime_dirs)

    def poll(self) -> Tuple[WindowRecord, ...]:
        if not self._signature:
            raise ConnectionFailure("HYPRLAND_INSTANCE_SIGNATURE is not set", backend=self.kind)
        path = os.fspath(self.socket_path)
        sock, deadline = self._client.connect(path)
        try:
            self._client.send_all(sock, CLIENTS_COMMAND)
            payload = self._client.recv_until_eof(sock, deadline)
        finally:
            sock.close()
        records = parse_clients(payload)
        self._logger.debug("Hyprland: found %d windows", len(records))
        return records

