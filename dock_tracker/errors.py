"""Failure taxonomy for backend polls.

Every failure is recoverable: the scheduler logs it and keeps the last good
snapshot. ``BackendKind.UNKNOWN`` is not an error and has no exception type.
"""
from __future__ import annotations

from typing import Optional

from dock_tracker.models import BackendKind


class PollError(Exception):
    """Base class for a failed poll."""

    def __init__(self, message: str, *, backend: Optional[BackendKind] = None) -> None:
        super().__init__(message)
        self.backend = backend

    def __str__(self) -> str:
        message = super().__str__()
        if self.backend is None:
            return message
        return f"[{self.backend.value}] {message}"


class ConnectionFailure(PollError):
    """The transport could not be opened or the peer is unreachable."""


class ProtocolFailure(PollError):
    """A reply arrived but was malformed, truncated or timed out mid-read."""
