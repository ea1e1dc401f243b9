"""Sway backend: i3-ipc framed ``get_tree`` over ``$SWAYSOCK``."""
from __future__ import annotations

import json
import logging
import struct
from typing import Any, List, Mapping, Optional, Tuple

from dock_tracker.backends.base import DEFAULT_POLL_TIMEOUT, UnixSocketClient, coerce_text
from dock_tracker.errors import ConnectionFailure, ProtocolFailure
from dock_tracker.models import BackendKind, WindowRecord

IPC_MAGIC = b"i3-ipc"
GET_TREE = 4
# sway-ipc(7) and the i3 IPC docs define length and type as 32-bit integers
# in the host's native byte order; "=" makes that explicit and unpadded.
_HEADER = struct.Struct("=6sII")
HEADER_SIZE = _HEADER.size  # 14
WINDOW_NODE_TYPES = frozenset({"con", "floating_con"})


def encode_message(message_type: int, payload: bytes = b"") -> bytes:
    """Frame one IPC request: magic, payload length, type, payload."""
    return _HEADER.pack(IPC_MAGIC, len(payload), message_type) + payload


def decode_header(header: bytes) -> Tuple[int, int]:
    """Return ``(payload_length, message_type)`` from a 14-byte reply header."""
    kind = BackendKind.SWAY
    if len(header) != HEADER_SIZE:
        raise ProtocolFailure(f"reply header is {len(header)} bytes, expected {HEADER_SIZE}", backend=kind)
    try:
        magic, length, message_type = _HEADER.unpack(header)
    except struct.error as exc:
        raise ProtocolFailure(f"undecodable reply header: {exc}", backend=kind) from exc
    if magic != IPC_MAGIC:
        raise ProtocolFailure(f"bad reply magic {magic!r}", backend=kind)
    return length, message_type


def _window_app_id(node: Mapping[str, Any]) -> Optional[str]:
    app_id = coerce_text(node.get("app_id"))
    if app_id:
        return app_id
    # XWayland clients report their class under window_properties instead.
    properties = node.get("window_properties")
    if isinstance(properties, dict):
        return coerce_text(properties.get("class")) or None
    return None


def collect_windows(root: Mapping[str, Any]) -> Tuple[WindowRecord, ...]:
    """Walk a ``get_tree`` document and return its leaf windows in tree order.

    Uses an explicit stack so hostile nesting depth cannot exhaust the
    interpreter's recursion limit.
    """
    records: List[WindowRecord] = []
    stack: List[Any] = [root]
    while stack:
        node = stack.pop()
        if not isinstance(node, dict):
            continue
        if node.get("type") in WINDOW_NODE_TYPES:
            app_id = _window_app_id(node)
            if app_id:
                records.append(
                    WindowRecord(
                        id=str(node.get("id", "")),
                        title=coerce_text(node.get("name")) or "",
                        app_id=app_id,
                        is_focused=bool(node.get("focused", False)),
                    )
                )
        children: List[Any] = []
        for key in ("nodes", "floating_nodes"):
            value = node.get(key)
            if isinstance(value, list):
                children.extend(value)
        stack.extend(reversed(children))
    return tuple(records)


def parse_tree(payload: bytes) -> Tuple[WindowRecord, ...]:
    kind = BackendKind.SWAY
    try:
        tree = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError, RecursionError) as exc:
        raise ProtocolFailure(f"invalid tree JSON: {exc}", backend=kind) from exc
    if not isinstance(tree, dict):
        raise ProtocolFailure(f"tree reply is {type(tree).__name__}, expected object", backend=kind)
    return collect_windows(tree)


class SwayBackend:
    """Speak the i3-ipc wire protocol directly; no swaymsg subprocess."""

    kind = BackendKind.SWAY

    def __init__(
        self,
        socket_path: str,
        *,
        timeout: float = DEFAULT_POLL_TIMEOUT,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._socket_path = socket_path
        self._logger = logger or logging.getLogger("DockTracker.Backend.Sway")
        self._client = UnixSocketClient(self.kind, self._logger, timeout)

    @classmethod
    def from_environment(
        cls,
        env: Mapping[str, str],
        *,
        timeout: float = DEFAULT_POLL_TIMEOUT,
        logger: Optional[logging.Logger] = None,
    ) -> "SwayBackend":
        return cls(env.get("SWAYSOCK") or "", timeout=timeout, logger=logger)

    @property
    def socket_path(self) -> str:
        return self._socket_path

    def poll(self) -> Tuple[WindowRecord, ...]:
        if not self._socket_path:
            raise ConnectionFailure("SWAYSOCK is not set", backend=self.kind)
        sock, deadline = self._client.connect(self._socket_path)
        try:
            self._client.send_all(sock, encode_message(GET_TREE))
            header = self._client.recv_exactly(sock, HEADER_SIZE, deadline)
            length, message_type = decode_header(header)
            if message_type != GET_TREE:
                raise ProtocolFailure(f"unexpected reply type {message_type}", backend=self.kind)
            payload = self._client.recv_exactly(sock, length, deadline) if length else b""
        finally:
            sock.close()
        records = parse_tree(payload)
        self._logger.debug("Sway: found %d windows", len(records))
        return records

