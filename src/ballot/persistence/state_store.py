"""State store: JSON snapshot of one election.

The event log is the record of what happened; the snapshot is the fast
path back to where the election stands. Writes go through a temporary
file and an atomic rename so a crash never leaves a half-written
snapshot behind.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

from ballot.models.election import ElectionState


class StateStore:
    """Persists an ElectionState to a single JSON file."""

    def __init__(self, storage_path: Path) -> None:
        self._storage_path = storage_path

    @property
    def storage_path(self) -> Path:
        return self._storage_path

    def exists(self) -> bool:
        return self._storage_path.exists()

    def save(self, state: ElectionState) -> None:
        """Write the snapshot. Raises OSError on write failure."""
        tmp = self._storage_path.with_suffix(self._storage_path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(state.to_dict(), f, indent=2, sort_keys=True, ensure_ascii=False)
            f.write("\n")
        os.replace(tmp, self._storage_path)

    def load(self) -> Optional[ElectionState]:
        """Read the snapshot, or None if nothing was saved yet.

        Raises ValueError if the file is not a valid election state.
        """
        if not self._storage_path.exists():
            return None
        raw = self._storage_path.read_text(encoding="utf-8")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"Corrupt state file {self._storage_path}: {e}") from e
        return ElectionState.from_dict(data)
