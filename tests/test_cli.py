from __future__ import annotations

import io
import json
import struct

from dock_tracker.cli import main


def _env(tmp_path, **extra):
    env = {
        "DOCK_TRACKER_LOG_DIR": str(tmp_path / "logs"),
        "DOCK_TRACKER_CONFIG": str(tmp_path / "tracker.json"),
    }
    env.update(extra)
    return env


def _sway_handler(tree):
    body = json.dumps(tree).encode("utf-8")

    def _handler(conn):
        request = b""
        while len(request) < 14:
            chunk = conn.recv(14 - len(request))
            if not chunk:
                return
            request += chunk
        conn.sendall(b"i3-ipc" + struct.pack("=II", len(body), 4) + body)

    return _handler


def test_once_on_unknown_session_prints_empty_snapshot(tmp_path):
    out = io.StringIO()

    status = main(["--once"], env=_env(tmp_path), out=out)

    payload = json.loads(out.getvalue())
    assert status == 0
    assert payload["backend"] == "unknown"
    assert payload["counts"] == {}
    assert payload["windows"] == []
    assert (tmp_path / "logs" / "dock-tracker.log").exists()


def test_app_query_against_sway(tmp_path, socket_dir, unix_server):
    path = socket_dir / "sway.sock"
    tree = {
        "type": "root",
        "nodes": [
            {"id": 1, "type": "con", "app_id": "foot", "name": "a", "nodes": []},
            {"id": 2, "type": "con", "app_id": "foot", "name": "b", "nodes": []},
        ],
    }
    unix_server(path, _sway_handler(tree))
    out = io.StringIO()

    status = main(["--app", "Foot"], env=_env(tmp_path, SWAYSOCK=str(path)), out=out)

    assert status == 0
    assert out.getvalue().strip() == "2"


def test_failed_first_poll_returns_error_status(tmp_path, socket_dir):
    out = io.StringIO()
    env = _env(tmp_path, SWAYSOCK=str(socket_dir / "missing.sock"))

    status = main(["--once"], env=env, out=out)

    assert status == 1
    assert json.loads(out.getvalue())["backend"] == "sway"


def test_backend_flag_overrides_detection(tmp_path):
    out = io.StringIO()

    main(["--once", "--backend", "unknown"], env=_env(tmp_path, SWAYSOCK="/nonexistent"), out=out)

    assert json.loads(out.getvalue())["backend"] == "unknown"
