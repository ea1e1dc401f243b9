"""Window discovery backends, one per supported desktop session."""
from __future__ import annotations

import logging
from typing import Mapping, Optional, Sequence

from dock_tracker.backends.base import DEFAULT_POLL_TIMEOUT, NullBackend, WindowBackend
from dock_tracker.backends.gnome import GnomeBackend
from dock_tracker.backends.hyprland import HyprlandBackend
from dock_tracker.backends.kwin import DEFAULT_SCRIPT_NAME, KWinBackend
from dock_tracker.backends.sway import SwayBackend
from dock_tracker.models import BackendKind


def create_backend(
    kind: BackendKind,
    env: Mapping[str, str],
    *,
    timeout: float = DEFAULT_POLL_TIMEOUT,
    hyprland_runtime_dirs: Sequence[str] = (),
    kwin_script_name: str = DEFAULT_SCRIPT_NAME,
    logger: Optional[logging.Logger] = None,
) -> WindowBackend:
    """Instantiate the backend for ``kind``; unknown sessions get a no-op backend."""
    base = logger or logging.getLogger("DockTracker.Backend")
    if kind is BackendKind.HYPRLAND:
        return HyprlandBackend.from_environment(
            env,
            runtime_dirs=hyprland_runtime_dirs,
            timeout=timeout,
            logger=base.getChild("Hyprland"),
        )
    if kind is BackendKind.SWAY:
        return SwayBackend.from_environment(env, timeout=timeout, logger=base.getChild("Sway"))
    if kind is BackendKind.KDE:
        return KWinBackend(timeout=timeout, script_name=kwin_script_name, logger=base.getChild("KWin"))
    if kind is BackendKind.GNOME:
        return GnomeBackend(timeout=timeout, logger=base.getChild("Gnome"))
    return NullBackend()


__all__ = [
    "GnomeBackend",
    "HyprlandBackend",
    "KWinBackend",
    "NullBackend",
    "SwayBackend",
    "WindowBackend",
    "create_backend",
]
