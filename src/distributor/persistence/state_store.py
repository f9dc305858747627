"""State store — JSON snapshot of every distributor and the local ledger.

Persisted per token type: the allocation registry, the escrow handle,
the gate state and one claim record per recipient that has claimed.
The in-memory token ledger's balances are stored alongside so a CLI
session can pick up where the last one stopped.

Writes go to a temporary file that then replaces the target, so a crash
mid-write leaves the previous snapshot intact.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

STATE_VERSION = 1


class StateStore:
    """Load/save the distributor state snapshot."""

    def __init__(self, storage_path: Path) -> None:
        self._storage_path = storage_path

    @property
    def storage_path(self) -> Path:
        return self._storage_path

    def exists(self) -> bool:
        return self._storage_path.exists()

    def load(self) -> dict[str, Any]:
        """Return the stored snapshot, or an empty one if none exists."""
        if not self._storage_path.exists():
            return {"version": STATE_VERSION, "ledger": None, "distributors": {}}
        with self._storage_path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        version = data.get("version")
        if version != STATE_VERSION:
            raise ValueError(
                f"Unsupported state version {version!r} in {self._storage_path}"
            )
        return data

    def save(
        self,
        distributors: dict[str, dict[str, Any]],
        ledger: Optional[dict[str, Any]] = None,
    ) -> None:
        """Atomically replace the stored snapshot."""
        snapshot = {
            "version": STATE_VERSION,
            "ledger": ledger,
            "distributors": distributors,
        }
        self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._storage_path.with_suffix(self._storage_path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(snapshot, f, indent=2, sort_keys=True)
        os.replace(tmp_path, self._storage_path)
