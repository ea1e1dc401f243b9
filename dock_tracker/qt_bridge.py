"""Qt-side watcher that turns registry changes into signals for dock widgets."""
from __future__ import annotations

import logging
from typing import Dict, List, Optional

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from dock_tracker.models import RegistrySnapshot, WindowRecord
from dock_tracker.tracker import WindowTracker

DEFAULT_REFRESH_MS = 2000

_LOGGER = logging.getLogger("DockTracker.QtBridge")


class WindowCountWatcher(QObject):
    """Reads a tracker's registry on a QTimer and emits when it changed.

    Runs entirely on the Qt thread and only ever reads the registry, so it
    never waits on compositor I/O.
    """

    counts_changed = pyqtSignal(dict)
    windows_changed = pyqtSignal(list)

    def __init__(
        self,
        tracker: WindowTracker,
        refresh_ms: int = DEFAULT_REFRESH_MS,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._tracker = tracker
        self._last_revision: Optional[int] = None
        self._last_counts: Dict[str, int] = {}
        self._last_windows: List[WindowRecord] = []
        self._timer = QTimer(self)
        self._timer.setInterval(max(100, int(refresh_ms)))
        self._timer.timeout.connect(self.refresh)

    @property
    def refresh_ms(self) -> int:
        return self._timer.interval()

    def start(self) -> None:
        if self._timer.isActive():
            return
        self.refresh()
        self._timer.start()

    def stop(self) -> None:
        self._timer.stop()

    def is_active(self) -> bool:
        return self._timer.isActive()

    def window_count(self, app_id: str) -> int:
        return self._tracker.get_window_count(app_id)

    def refresh(self) -> bool:
        """Emit signals if the registry moved on; returns True when it did."""
        snapshot: RegistrySnapshot = self._tracker.snapshot()
        if snapshot.revision == self._last_revision:
            return False
        self._last_revision = snapshot.revision
        changed = False
        if snapshot.counts != self._last_counts:
            self._last_counts = dict(snapshot.counts)
            self.counts_changed.emit(dict(snapshot.counts))
            changed = True
        windows = list(snapshot.windows)
        if windows != self._last_windows:
            self._last_windows = windows
            self.windows_changed.emit(list(windows))
            changed = True
        if changed:
            _LOGGER.debug(
                "Registry revision %d: %d windows across %d apps",
                snapshot.revision,
                len(windows),
                len(snapshot.counts),
            )
        return changed
