"""Shared plumbing for the compositor backends."""
from __future__ import annotations

import logging
import socket
import time
from typing import Any, Optional, Protocol, Tuple

from dock_tracker.errors import ConnectionFailure, ProtocolFailure
from dock_tracker.models import BackendKind, WindowRecord

DEFAULT_POLL_TIMEOUT = 1.5
_READ_CHUNK = 65536


class WindowBackend(Protocol):
    """One request/response cycle against a desktop session's window list.

    ``poll`` returns a fresh tuple of records, or ``None`` when the backend
    deliberately produces no data. Failures raise
    :class:`~dock_tracker.errors.ConnectionFailure` or
    :class:`~dock_tracker.errors.ProtocolFailure`.
    """

    kind: BackendKind

    def poll(self) -> Optional[Tuple[WindowRecord, ...]]:
        ...


class NullBackend:
    """Backend for unsupported sessions: never performs I/O."""

    kind = BackendKind.UNKNOWN

    def poll(self) -> Optional[Tuple[WindowRecord, ...]]:
        return None


def coerce_text(value: Any) -> Optional[str]:
    """Return ``value`` as a stripped string, or None when it is not text."""
    if isinstance(value, bytes):
        try:
            value = value.decode("utf-8")
        except UnicodeDecodeError:
            return None
    if not isinstance(value, str):
        return None
    return value.strip()


class UnixSocketClient:
    """Blocking Unix-socket helper bounded by a per-poll deadline."""

    def __init__(self, kind: BackendKind, logger: logging.Logger, timeout: float = DEFAULT_POLL_TIMEOUT) -> None:
        self._kind = kind
        self._logger = logger
        self._timeout = max(0.05, float(timeout))

    def connect(self, path: str) -> Tuple[socket.socket, float]:
        """Open ``path`` and return the socket plus the poll deadline."""
        deadline = time.monotonic() + self._timeout
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.settimeout(self._timeout)
        try:
            sock.connect(path)
        except (socket.timeout, OSError) as exc:
            sock.close()
            raise ConnectionFailure(f"cannot connect to {path}: {exc}", backend=self._kind) from exc
        return sock, deadline

    def send_all(self, sock: socket.socket, payload: bytes) -> None:
        try:
            sock.sendall(payload)
        except (socket.timeout, OSError) as exc:
            raise ConnectionFailure(f"failed to send request: {exc}", backend=self._kind) from exc

    def _arm(self, sock: socket.socket, deadline: float) -> None:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise ProtocolFailure("timed out waiting for reply", backend=self._kind)
        sock.settimeout(remaining)

    def recv_exactly(self, sock: socket.socket, size: int, deadline: float) -> bytes:
        chunks = []
        received = 0
        while received < size:
            self._arm(sock, deadline)
            try:
                chunk = sock.recv(min(size - received, _READ_CHUNK))
            except socket.timeout as exc:
                raise ProtocolFailure("timed out waiting for reply", backend=self._kind) from exc
            except OSError as exc:
                raise ProtocolFailure(f"read failed: {exc}", backend=self._kind) from exc
            if not chunk:
                raise ProtocolFailure(
                    f"short read: expected {size} bytes, got {received}", backend=self._kind
                )
            chunks.append(chunk)
            received += len(chunk)
        return b"".join(chunks)

    def recv_until_eof(self, sock: socket.socket, deadline: float) -> bytes:
        chunks = []
        while True:
            self._arm(sock, deadline)
            try:
                chunk = sock.recv(_READ_CHUNK)
            except socket.timeout as exc:
                raise ProtocolFailure("timed out waiting for end of reply", backend=self._kind) from exc
            except OSError as exc:
                raise ProtocolFailure(f"read failed: {exc}", backend=self._kind) from exc
            if not chunk:
                break
            chunks.append(chunk)
        return b"".join(chunks)
