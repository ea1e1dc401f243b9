from __future__ import annotations

import logging

import pytest

from dock_tracker.environment import detect_backend_kind, resolve_backend_kind
from dock_tracker.models import BackendKind


@pytest.mark.parametrize(
    ("env", "expected"),
    [
        ({}, BackendKind.UNKNOWN),
        ({"HYPRLAND_INSTANCE_SIGNATURE": "abc"}, BackendKind.HYPRLAND),
        ({"SWAYSOCK": "/run/user/1000/sway-ipc.sock"}, BackendKind.SWAY),
        ({"XDG_CURRENT_DESKTOP": "KDE"}, BackendKind.KDE),
        ({"XDG_CURRENT_DESKTOP": "Plasma"}, BackendKind.KDE),
        ({"XDG_CURRENT_DESKTOP": "ubuntu:GNOME"}, BackendKind.GNOME),
        ({"XDG_SESSION_DESKTOP": "plasmawayland"}, BackendKind.KDE),
        ({"XDG_SESSION_DESKTOP": "gnome-xorg"}, BackendKind.GNOME),
        ({"XDG_CURRENT_DESKTOP": "XFCE"}, BackendKind.UNKNOWN),
    ],
)
def test_detect_backend_kind(env, expected):
    assert detect_backend_kind(env) is expected


def test_compositor_markers_beat_desktop_names():
    env = {
        "XDG_CURRENT_DESKTOP": "KDE",
        "SWAYSOCK": "/tmp/sway.sock",
        "HYPRLAND_INSTANCE_SIGNATURE": "sig",
    }
    assert detect_backend_kind(env) is BackendKind.HYPRLAND
    del env["HYPRLAND_INSTANCE_SIGNATURE"]
    assert detect_backend_kind(env) is BackendKind.SWAY


def test_kde_checked_before_gnome():
    assert detect_backend_kind({"XDG_CURRENT_DESKTOP": "GNOME:KDE"}) is BackendKind.KDE


def test_empty_markers_are_ignored():
    env = {"HYPRLAND_INSTANCE_SIGNATURE": "", "SWAYSOCK": "", "XDG_CURRENT_DESKTOP": "GNOME"}
    assert detect_backend_kind(env) is BackendKind.GNOME


def test_override_wins_over_detection():
    env = {"SWAYSOCK": "/tmp/sway.sock"}
    assert resolve_backend_kind("kwin", env) is BackendKind.KDE


def test_unrecognised_override_is_logged_and_ignored(caplog):
    env = {"SWAYSOCK": "/tmp/sway.sock"}
    with caplog.at_level(logging.WARNING, logger="DockTracker.Environment"):
        kind = resolve_backend_kind("weston", env)

    assert kind is BackendKind.SWAY
    assert any("weston" in record.getMessage() for record in caplog.records)


def test_backend_kind_parse():
    assert BackendKind.parse(" Hyprland ") is BackendKind.HYPRLAND
    assert BackendKind.parse("mutter") is BackendKind.GNOME
    assert BackendKind.parse("") is None
    assert BackendKind.parse(3) is None
