"""Lock-guarded store of the last successfully polled window set."""
from __future__ import annotations

import threading
import time
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from dock_tracker.models import RegistrySnapshot, WindowRecord


def _normalise(app_id: str) -> str:
    return (app_id or "").strip().lower()


def _fuzzy_match(candidate: str, query: str) -> bool:
    # Launcher command names and compositor classes rarely agree exactly
    # ("firefox" vs "Firefox-esr"), so either string may contain the other.
    if not candidate or not query:
        return False
    return candidate == query or query in candidate or candidate in query


def count_by_app(records: Iterable[WindowRecord]) -> Dict[str, int]:
    """Aggregate windows per lower-cased app id, skipping empty ids."""
    counts: Dict[str, int] = {}
    for record in records:
        key = _normalise(record.app_id)
        if not key:
            continue
        counts[key] = counts.get(key, 0) + 1
    return counts


class WindowRegistry:
    """Holds the window records and the per-app counts derived from them.

    Both are swapped together under one lock, so a reader never sees counts
    from a different poll than the records.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._lock = threading.Lock()
        self._clock = clock
        self._windows: Tuple[WindowRecord, ...] = ()
        self._counts: Dict[str, int] = {}
        self._revision = 0
        self._updated_at: Optional[float] = None

    # Writers --------------------------------------------------------------

    def replace(self, records: Iterable[WindowRecord]) -> int:
        """Replace the whole window set; returns the new revision."""
        windows = tuple(records)
        counts = count_by_app(windows)
        now = self._clock()
        with self._lock:
            self._windows = windows
            self._counts = counts
            self._revision += 1
            self._updated_at = now
            return self._revision

    def set_window_count(self, app_id: str, count: int) -> None:
        """Override the count for one app; zero removes the entry."""
        key = _normalise(app_id)
        if not key:
            return
        count = max(0, int(count))
        with self._lock:
            if count == 0:
                if self._counts.pop(key, None) is None:
                    return
            else:
                if self._counts.get(key) == count:
                    return
                self._counts[key] = count
            self._revision += 1

    # Readers --------------------------------------------------------------

    def get_window_count(self, app_id: str) -> int:
        query = _normalise(app_id)
        if not query:
            return 0
        with self._lock:
            exact = self._counts.get(query)
            if exact is not None:
                return exact
            for key, count in self._counts.items():
                if _fuzzy_match(key, query):
                    return count
        return 0

    def get_windows_for_app(self, app_id: str) -> List[WindowRecord]:
        query = _normalise(app_id)
        if not query:
            return []
        with self._lock:
            windows = self._windows
        return [record for record in windows if _fuzzy_match(_normalise(record.app_id), query)]

    def get_all_windows(self) -> List[WindowRecord]:
        with self._lock:
            return list(self._windows)

    def count_entries(self) -> int:
        """Number of explicitly stored per-app counts."""
        with self._lock:
            return len(self._counts)

    @property
    def revision(self) -> int:
        with self._lock:
            return self._revision

    def snapshot(self) -> RegistrySnapshot:
        with self._lock:
            return RegistrySnapshot(
                windows=self._windows,
                counts=dict(self._counts),
                revision=self._revision,
                updated_at=self._updated_at,
            )
