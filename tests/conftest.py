from __future__ import annotations

import logging
import os
import shutil
import socket
import tempfile
import threading
from pathlib import Path
from typing import Callable, List

import pytest


def pytest_runtest_setup(item):
    if item.get_closest_marker("pyqt_required"):
        if not os.getenv("PYQT_TESTS"):
            pytest.skip("PYQT_TESTS not set; skipping PyQt-dependent test")


class UnixServer:
    """Accepts connections on a Unix socket and hands each to ``handler``."""

    def __init__(self, path: Path, handler: Callable[[socket.socket], None]) -> None:
        self.path = path
        self._handler = handler
        self._sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        self._sock.bind(str(path))
        self._sock.listen(4)
        self._sock.settimeout(0.2)
        self._stop = threading.Event()
        self.errors: List[BaseException] = []
        self._thread = threading.Thread(target=self._serve, name="test-unix-server", daemon=True)
        self._thread.start()

    def _serve(self) -> None:
        while not self._stop.is_set():
            try:
                conn, _ = self._sock.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            with conn:
                conn.settimeout(2.0)
                try:
                    self._handler(conn)
                except Exception as exc:  # surfaced to the test via .errors
                    self.errors.append(exc)

    def close(self) -> None:
        self._stop.set()
        self._thread.join(timeout=2.0)
        self._sock.close()


@pytest.fixture
def socket_dir():
    # AF_UNIX paths are limited to ~108 bytes; pytest's tmp_path can exceed that.
    path = Path(tempfile.mkdtemp(prefix="dt-", dir="/tmp"))
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def unix_server():
    servers: List[UnixServer] = []

    def _start(path: Path, handler: Callable[[socket.socket], None]) -> UnixServer:
        path.parent.mkdir(parents=True, exist_ok=True)
        server = UnixServer(path, handler)
        servers.append(server)
        return server

    yield _start
    for server in servers:
        server.close()


@pytest.fixture(autouse=True)
def _restore_tracker_logger():
    logger = logging.getLogger("DockTracker")
    handlers = list(logger.handlers)
    propagate = logger.propagate
    level = logger.level
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.propagate = propagate
    logger.setLevel(level)
