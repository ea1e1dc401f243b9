"""Diagnostics CLI: show what the tracker sees in the current session."""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import time
from dataclasses import replace
from pathlib import Path
from typing import Mapping, Optional, TextIO

from dock_tracker.config import load_tracker_config
from dock_tracker.logging_utils import configure_logging
from dock_tracker.models import RegistrySnapshot
from dock_tracker.tracker import WindowTracker, create_window_tracker


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Inspect per-application window counts for the current desktop session")
    parser.add_argument("--config", type=Path, help="Path to tracker.json (defaults to the XDG config location)")
    parser.add_argument("--backend", help="Force a backend: kde, gnome, hyprland, sway or unknown")
    parser.add_argument("--interval", type=float, help="Seconds between polls in watch mode")
    parser.add_argument("--once", action="store_true", help="Poll once, print the snapshot as JSON and exit")
    parser.add_argument("--app", help="Poll once and print the window count for this application id")
    parser.add_argument("--debug", action="store_true", help="Log debug output to stderr")
    return parser.parse_args(argv)


def snapshot_to_json(tracker: WindowTracker, snapshot: RegistrySnapshot) -> str:
    payload = {
        "backend": tracker.get_backend_kind().value,
        "revision": snapshot.revision,
        "updated_at": snapshot.updated_at,
        "counts": snapshot.counts,
        "windows": [record.as_dict() for record in snapshot.windows],
    }
    return json.dumps(payload, indent=2, sort_keys=True)


def _watch(tracker: WindowTracker, out: TextIO) -> None:
    last_revision = -1
    tracker.start()
    try:
        while True:
            snapshot = tracker.snapshot()
            if snapshot.revision != last_revision:
                last_revision = snapshot.revision
                summary = ", ".join(f"{app}={count}" for app, count in sorted(snapshot.counts.items())) or "no windows"
                out.write(f"[{time.strftime('%H:%M:%S')}] {summary}\n")
                out.flush()
            time.sleep(tracker.scheduler.interval / 2)
    except KeyboardInterrupt:
        pass
    finally:
        tracker.stop()


def main(
    argv: Optional[list[str]] = None,
    *,
    env: Optional[Mapping[str, str]] = None,
    out: TextIO = sys.stdout,
) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    env = os.environ if env is None else env
    config = load_tracker_config(args.config, env)
    if args.backend:
        config = replace(config, backend=args.backend)
    if args.interval:
        config = replace(config, poll_interval=max(0.25, args.interval))
    if args.debug:
        config = replace(config, debug=True)
    logger = configure_logging(config, env=env)
    if args.debug:
        stream = logging.StreamHandler(sys.stderr)
        stream.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        logger.addHandler(stream)

    tracker = create_window_tracker(config, env)
    if args.app or args.once:
        tracker.poll_now()
        if args.app:
            out.write(f"{tracker.get_window_count(args.app)}\n")
        else:
            out.write(snapshot_to_json(tracker, tracker.snapshot()) + "\n")
        error = tracker.scheduler.last_error
        return 1 if error is not None and tracker.scheduler.poll_count == 0 else 0

    _watch(tracker, out)
    return 0
