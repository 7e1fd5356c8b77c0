"""
On-disk registry state.

The whole registry (allocator counter, records, permission tables) is kept in
a single JSON document, rewritten after each accepted transition. Writes go to
a temp file that is then renamed over the old one, so a reader sees either the
previous state or the new one.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from .errors import PersistenceError

STATE_VERSION = 1


class StateFile:
    """JSON state document at `<data_dir>/state.json`."""

    def __init__(self, path: Path):
        self.path = path

    def save(self, state: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        document = {"version": STATE_VERSION, **state}
        serialized = json.dumps(document, indent=2, sort_keys=True)

        # Write atomically (write to temp, then rename)
        temp_path = self.path.with_suffix(".tmp")
        temp_path.write_text(serialized, encoding="utf-8")
        os.replace(temp_path, self.path)

    def load(self) -> dict[str, Any] | None:
        """Return the stored state, or None if nothing has been saved yet."""
        if not self.path.exists():
            return None
        try:
            document = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Corrupt state file {self.path}: {e}") from e

        if not isinstance(document, dict):
            raise PersistenceError(f"Corrupt state file {self.path}: expected an object")
        version = document.get("version")
        if version != STATE_VERSION:
            raise PersistenceError(f"Unsupported state version in {self.path}: {version!r}")
        return document
