#!/usr/bin/env python3
"""Distributor invariant checks against the persisted state and event log.

Usage:
    python3 tools/check_invariants.py
    python3 tools/check_invariants.py path/to/data
"""

import json
import sys
from pathlib import Path

from distributor.audit import check_state
from distributor.persistence.event_log import EventLog


ROOT = Path(__file__).resolve().parents[1]
DEFAULT_DATA = ROOT / "data"


def load_json(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def check(data_dir: Path = DEFAULT_DATA) -> int:
    state_path = data_dir / "state.json"
    events_path = data_dir / "events.jsonl"

    if not state_path.exists():
        print(f"No state snapshot at {state_path}; nothing to check.")
        return 0

    snapshot = load_json(state_path)
    events = EventLog(storage_path=events_path).events() if events_path.exists() else None
    errors = check_state(snapshot, events)

    if errors:
        print("Invariant check FAILED:")
        for err in errors:
            print(f"  - {err}")
        return 1

    tokens = ", ".join(sorted(snapshot.get("distributors", {}))) or "none"
    print(f"Invariant check passed (tokens: {tokens}).")
    return 0


if __name__ == "__main__":
    target = Path(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_DATA
    raise SystemExit(check(target))
