"""
Append-only event journal.

The journal subscribes to the registry's emitter and records every event it
sees, one JSON object per line in events.jsonl. It is an audit trail: the
permission ledger never consults it. Lines are written once and never
rewritten.

Without a path the journal keeps events in memory only, which is what the
registry uses when persistence is off.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Callable, Iterator, Literal

from .events import RegistryEvent


class EventJournal:
    """
    Append-only event log with indexed queries.

    INVARIANT: existing lines are never modified. The only write is append().
    """

    def __init__(self, path: Path | None = None):
        self.path = path

        # Query indexes (lazy-loaded from disk)
        self._events: list[RegistryEvent] = []
        self._by_evidence_id: dict[int, list[int]] = {}
        self._by_event_type: dict[str, list[int]] = {}
        self._indexed: bool = path is None

    def __call__(self, event: RegistryEvent) -> None:
        self.append(event)

    def _ensure_indexed(self) -> None:
        if self._indexed:
            return
        for event in self.iter_events():
            self._index(event)
        self._indexed = True

    def _index(self, event: RegistryEvent) -> None:
        idx = len(self._events)
        self._events.append(event)
        self._by_evidence_id.setdefault(event.evidence_id, []).append(idx)
        self._by_event_type.setdefault(event.event_type, []).append(idx)

    def append(self, event: RegistryEvent) -> None:
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(event.to_json() + "\n")

        # Update indexes if already built
        if self._indexed:
            self._index(event)

    def iter_events(self) -> Iterator[RegistryEvent]:
        """All events in append order."""
        if self.path is None:
            yield from list(self._events)
            return
        if not self.path.exists():
            return
        with self.path.open("r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line:
                    yield RegistryEvent.from_json(line)

    def query(
        self,
        *,
        evidence_id: int | None = None,
        event_type: str | None = None,
        actor: str | None = None,
        since: datetime | None = None,
        where: Callable[[RegistryEvent], bool] | None = None,
        limit: int | None = None,
        order: Literal["asc", "desc"] = "asc",
    ) -> list[RegistryEvent]:
        """
        Query events with composable filters.

        Args:
            evidence_id: Filter by evidence id
            event_type: Filter by event type
            actor: Filter by acting identity
            since: Filter events on or after this timestamp
            where: Custom filter predicate
            limit: Maximum number of events to return (applied after ordering)
            order: "asc" = append order, "desc" = newest first

        Returns:
            List of matching events
        """
        self._ensure_indexed()

        candidate_indices: set[int] | None = None
        if evidence_id is not None:
            indices = set(self._by_evidence_id.get(evidence_id, []))
            candidate_indices = indices if candidate_indices is None else candidate_indices & indices
        if event_type is not None:
            indices = set(self._by_event_type.get(event_type, []))
            candidate_indices = indices if candidate_indices is None else candidate_indices & indices
        if candidate_indices is None:
            candidate_indices = set(range(len(self._events)))

        results: list[RegistryEvent] = []
        for idx in sorted(candidate_indices):
            event = self._events[idx]
            if actor is not None and event.actor != actor:
                continue
            if since is not None and event.timestamp < since:
                continue
            if where is not None and not where(event):
                continue
            results.append(event)

        if order == "desc":
            results.reverse()
        if limit is not None and limit >= 0:
            results = results[:limit]
        return results

    def audit_trail(self, evidence_id: int) -> list[RegistryEvent]:
        """Every event for one record, oldest first."""
        return self.query(evidence_id=evidence_id)

    def last_evidence_id(self) -> int:
        """Highest evidence id any recorded event refers to (0 if none)."""
        self._ensure_indexed()
        return max(self._by_evidence_id, default=0)
