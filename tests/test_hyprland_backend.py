from __future__ import annotations

import json
from pathlib import Path

import pytest

from dock_tracker.backends.hyprland import (
    HyprlandBackend,
    parse_clients,
    resolve_socket_path,
    socket_candidates,
)
from dock_tracker.errors import ConnectionFailure, ProtocolFailure
from dock_tracker.registry import count_by_app

CLIENTS = [
    {"address": "0x1", "title": "one", "class": "X", "focusHistoryID": 1},
    {"address": "0x2", "title": "two", "class": "X", "focusHistoryID": 0},
    {"address": "0x3", "title": "three", "class": "Y", "focusHistoryID": 2},
]


def test_parse_clients_counts_by_class():
    records = parse_clients(json.dumps(CLIENTS).encode("utf-8"))

    assert count_by_app(records) == {"x": 2, "y": 1}
    assert [record.id for record in records] == ["0x1", "0x2", "0x3"]
    assert [record.is_focused for record in records] == [False, True, False]
    assert records[2].title == "three"


def test_parse_clients_skips_entries_without_class():
    payload = json.dumps([{"address": "0x1", "title": "ghost", "class": ""}, "junk", CLIENTS[0]])
    records = parse_clients(payload.encode("utf-8"))

    assert [record.app_id for record in records] == ["X"]


@pytest.mark.parametrize("payload", [b"", b"   ", b"[{", b"\xff\xfe", b'{"class": "X"}'])
def test_parse_clients_rejects_malformed_replies(payload):
    with pytest.raises(ProtocolFailure):
        parse_clients(payload)


def test_socket_candidates_prefer_runtime_dir():
    candidates = socket_candidates("sig", ["/run/user/1000"])
    assert candidates == [
        Path("/run/user/1000/hypr/sig/.socket.sock"),
        Path("/tmp/hypr/sig/.socket.sock"),
    ]


def test_resolve_socket_path_falls_back_to_legacy_location(tmp_path):
    assert resolve_socket_path("sig", [str(tmp_path)]) == Path("/tmp/hypr/sig/.socket.sock")

    existing = tmp_path / "hypr" / "sig" / ".socket.sock"
    existing.parent.mkdir(parents=True)
    existing.touch()
    assert resolve_socket_path("sig", [str(tmp_path)]) == existing


def test_poll_sends_clients_command_and_reads_to_eof(socket_dir, unix_server):
    path = socket_dir / "hypr" / "abc123" / ".socket.sock"
    received = []

    def _handler(conn):
        received.append(conn.recv(64))
        body = json.dumps(CLIENTS).encode("utf-8")
        # Send in pieces to exercise the read-until-close loop.
        conn.sendall(body[:10])
        conn.sendall(body[10:])

    unix_server(path, _handler)
    backend = HyprlandBackend.from_environment(
        {"HYPRLAND_INSTANCE_SIGNATURE": "abc123", "XDG_RUNTIME_DIR": str(socket_dir)},
        timeout=2.0,
    )

    records = backend.poll()

    assert received == [b"j/clients"]
    assert backend.socket_path == path
    assert count_by_app(records) == {"x": 2, "y": 1}


def test_poll_without_signature_is_connection_failure():
    with pytest.raises(ConnectionFailure):
        HyprlandBackend.from_environment({}).poll()


def test_poll_with_dead_socket_is_connection_failure(socket_dir):
    backend = HyprlandBackend("nosuchsig", runtime_dirs=[str(socket_dir)], timeout=0.5)
    with pytest.raises(ConnectionFailure):
        backend.poll()


def test_empty_reply_is_protocol_failure(socket_dir, unix_server):
    path = socket_dir / "hypr" / "sig" / ".socket.sock"
    unix_server(path, lambda conn: conn.recv(64))
    backend = HyprlandBackend("sig", runtime_dirs=[str(socket_dir)], timeout=2.0)

    with pytest.raises(ProtocolFailure):
        backend.poll()


def test_hostile_nesting_is_protocol_failure():
    with pytest.raises(ProtocolFailure):
        parse_clients(b"[" * 200000 + b"]" * 200000)
