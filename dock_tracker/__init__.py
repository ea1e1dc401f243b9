"""Live per-application window discovery for Linux desktop docks."""

from dock_tracker.errors import ConnectionFailure, PollError, ProtocolFailure
from dock_tracker.models import BackendKind, RegistrySnapshot, WindowRecord
from dock_tracker.registry import WindowRegistry
from dock_tracker.tracker import WindowTracker, create_window_tracker

__version__ = "0.3.0"

__all__ = [
    "BackendKind",
    "ConnectionFailure",
    "PollError",
    "ProtocolFailure",
    "RegistrySnapshot",
    "WindowRecord",
    "WindowRegistry",
    "WindowTracker",
    "__version__",
    "create_window_tracker",
]
