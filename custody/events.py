"""
Registry events and the observer fan-out that delivers them.

Events are notifications, not state: the permission ledger never reads them
back. One event is emitted per accepted transition, after the transition has
committed. Failed operations emit nothing.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

logger = logging.getLogger(__name__)

# Event type constants
EVIDENCE_SUBMITTED = "evidence.submitted"
ACCESS_REQUESTED = "access.requested"
ACCESS_GRANTED = "access.granted"
ACCESS_DENIED = "access.denied"
ACCESS_REVOKED = "access.revoked"
EVIDENCE_DEACTIVATED = "evidence.deactivated"
EVIDENCE_REACTIVATED = "evidence.reactivated"

EVENT_TYPES = frozenset({
    EVIDENCE_SUBMITTED,
    ACCESS_REQUESTED,
    ACCESS_GRANTED,
    ACCESS_DENIED,
    ACCESS_REVOKED,
    EVIDENCE_DEACTIVATED,
    EVIDENCE_REACTIVATED,
})


@dataclass(frozen=True)
class RegistryEvent:
    """Immutable notification of an accepted registry transition."""

    event_type: str  # One of EVENT_TYPES
    evidence_id: int
    actor: str  # identity that performed the operation
    timestamp: datetime
    payload: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.event_type not in EVENT_TYPES:
            raise ValueError(f"Invalid event_type: {self.event_type}")

    @property
    def user(self) -> str | None:
        """Subject of an access transition (requester for requests)."""
        return self.payload.get("user") or self.payload.get("requester")

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: dict[str, Any] = {
            "event_type": self.event_type,
            "evidence_id": self.evidence_id,
            "actor": self.actor,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.payload:
            result["payload"] = self.payload
        return result

    def to_json(self) -> str:
        """Serialize to JSON string (single line)."""
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RegistryEvent:
        """Reconstruct from JSON dict."""
        return cls(
            event_type=data["event_type"],
            evidence_id=int(data["evidence_id"]),
            actor=data["actor"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            payload=data.get("payload", {}),
        )

    @classmethod
    def from_json(cls, line: str) -> RegistryEvent:
        """Parse from JSON string."""
        return cls.from_dict(json.loads(line))


def create_event(
    event_type: str,
    evidence_id: int,
    actor: str,
    *,
    payload: dict[str, Any] | None = None,
    timestamp: datetime | None = None,
) -> RegistryEvent:
    """Factory for events with a consistent UTC timestamp."""
    return RegistryEvent(
        event_type=event_type,
        evidence_id=evidence_id,
        actor=actor,
        timestamp=timestamp or datetime.now(timezone.utc),
        payload=payload or {},
    )


Observer = Callable[[RegistryEvent], None]


class EventEmitter:
    """
    Delivers events to subscribed observers in subscription order.

    An observer that raises is logged and skipped; delivery continues with the
    next observer and the triggering operation still succeeds.
    """

    def __init__(self) -> None:
        self._observers: list[Observer] = []

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer. Returns a callable that unsubscribes it."""
        self._observers.append(observer)
        return lambda: self.unsubscribe(observer)

    def unsubscribe(self, observer: Observer) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def emit(self, event: RegistryEvent) -> None:
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception:
                logger.warning(
                    "Observer %r failed on %s for evidence %s",
                    observer,
                    event.event_type,
                    event.evidence_id,
                    exc_info=True,
                )

    def __len__(self) -> int:
        return len(self._observers)
