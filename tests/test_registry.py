from __future__ import annotations

import threading

from dock_tracker.models import WindowRecord
from dock_tracker.registry import WindowRegistry, count_by_app


def _records(*app_ids: str) -> list[WindowRecord]:
    return [WindowRecord(id=str(index), title=f"{app} window", app_id=app) for index, app in enumerate(app_ids)]


def test_lookup_is_case_insensitive():
    registry = WindowRegistry()
    registry.set_window_count("Firefox", 2)

    assert registry.get_window_count("firefox") == 2
    assert registry.get_window_count("FIREFOX") == 2
    assert registry.get_window_count("Firefox") == 2


def test_set_window_count_round_trip():
    registry = WindowRegistry()
    registry.set_window_count("x", 5)
    assert registry.get_window_count("x") == 5


def test_zero_count_removes_entry():
    registry = WindowRegistry()
    registry.set_window_count("x", 5)
    registry.set_window_count("x", 0)

    assert registry.get_window_count("x") == 0
    assert registry.count_entries() == 0
    assert "x" not in registry.snapshot().counts


def test_unknown_app_counts_zero():
    registry = WindowRegistry()
    assert registry.get_window_count("firefox") == 0
    assert registry.get_windows_for_app("firefox") == []


def test_substring_match_in_both_directions():
    registry = WindowRegistry()
    registry.replace(_records("Firefox-esr", "Firefox-esr", "org.gnome.Nautilus"))

    assert registry.get_window_count("firefox") == 2
    assert registry.get_window_count("nautilus") == 1
    # The launcher may carry the longer name instead.
    assert registry.get_window_count("org.gnome.Nautilus.desktop") == 1


def test_empty_query_never_matches():
    registry = WindowRegistry()
    registry.replace(_records("kitty"))

    assert registry.get_window_count("") == 0
    assert registry.get_windows_for_app("  ") == []


def test_windows_for_app_keep_poll_order():
    registry = WindowRegistry()
    records = [
        WindowRecord(id="3", title="b", app_id="kitty"),
        WindowRecord(id="1", title="x", app_id="firefox"),
        WindowRecord(id="2", title="a", app_id="Kitty"),
    ]
    registry.replace(records)

    matched = registry.get_windows_for_app("KITTY")
    assert [record.id for record in matched] == ["3", "2"]
    assert registry.get_all_windows() == records


def test_replace_recomputes_counts_and_drops_overrides():
    registry = WindowRegistry()
    registry.set_window_count("steam", 1)
    registry.replace(_records("X", "X", "Y"))

    assert registry.snapshot().counts == {"x": 2, "y": 1}
    assert registry.get_window_count("steam") == 0


def test_count_by_app_skips_empty_ids():
    counts = count_by_app(_records("a", "", "A", "b"))
    assert counts == {"a": 2, "b": 1}


def test_revision_advances_on_every_change():
    registry = WindowRegistry(clock=lambda: 123.0)
    assert registry.revision == 0

    registry.replace(_records("a"))
    registry.set_window_count("b", 2)
    registry.set_window_count("b", 2)  # no-op
    registry.set_window_count("missing", 0)  # no-op

    snapshot = registry.snapshot()
    assert snapshot.revision == 2
    assert snapshot.updated_at == 123.0


def test_snapshot_counts_are_a_copy():
    registry = WindowRegistry()
    registry.replace(_records("a"))
    snapshot = registry.snapshot()
    snapshot.counts["a"] = 99

    assert registry.get_window_count("a") == 1


def test_readers_never_see_mixed_polls():
    registry = WindowRegistry()
    first = _records("a", "a")
    second = _records("b", "b", "b")
    registry.replace(first)
    stop = threading.Event()
    mismatches = []

    def _reader():
        while not stop.is_set():
            snapshot = registry.snapshot()
            if count_by_app(snapshot.windows) != snapshot.counts:
                mismatches.append(snapshot)

    thread = threading.Thread(target=_reader)
    thread.start()
    for _ in range(500):
        registry.replace(second)
        registry.replace(first)
    stop.set()
    thread.join()

    assert mismatches == []
