"""Pick the window discovery backend for the current desktop session."""
from __future__ import annotations

import logging
import os
from typing import Mapping, Optional

from dock_tracker.models import BackendKind

_LOGGER = logging.getLogger("DockTracker.Environment")

HYPRLAND_SIGNATURE_VAR = "HYPRLAND_INSTANCE_SIGNATURE"
SWAY_SOCKET_VAR = "SWAYSOCK"
DESKTOP_NAME_VARS = ("XDG_CURRENT_DESKTOP", "XDG_SESSION_DESKTOP")


def _desktop_names(env: Mapping[str, str]) -> str:
    return " ".join((env.get(name) or "").lower() for name in DESKTOP_NAME_VARS)


def detect_backend_kind(env: Optional[Mapping[str, str]] = None) -> BackendKind:
    """Return the backend kind implied by session markers.

    Compositor-specific markers are unambiguous and are checked before the
    generic desktop-name variables, since some sessions set several at once.
    """
    env = os.environ if env is None else env
    if env.get(HYPRLAND_SIGNATURE_VAR):
        return BackendKind.HYPRLAND
    if env.get(SWAY_SOCKET_VAR):
        return BackendKind.SWAY
    desktop = _desktop_names(env)
    if "kde" in desktop or "plasma" in desktop:
        return BackendKind.KDE
    if "gnome" in desktop:
        return BackendKind.GNOME
    return BackendKind.UNKNOWN


def resolve_backend_kind(
    override: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    logger: Optional[logging.Logger] = None,
) -> BackendKind:
    """Apply a configured override, falling back to :func:`detect_backend_kind`."""
    log = logger or _LOGGER
    if override:
        forced = BackendKind.parse(override)
        if forced is not None:
            log.info("Window tracking backend forced to %s by configuration", forced.value)
            return forced
        log.warning("Ignoring unrecognised backend override %r", override)
    kind = detect_backend_kind(env)
    if kind is BackendKind.UNKNOWN:
        log.info("No supported desktop session detected; window tracking will stay idle")
    else:
        log.info("Detected desktop session backend: %s", kind.value)
    return kind
