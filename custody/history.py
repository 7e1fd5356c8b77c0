"""
Access-request history folded from journal events.

The pending/granted collections in the permission ledger describe only the
current state: a denied request simply disappears from them. History keeps
every request ever made and how it ended, computed from the journal and
never stored.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from .events import (
    ACCESS_DENIED,
    ACCESS_GRANTED,
    ACCESS_REQUESTED,
    ACCESS_REVOKED,
    RegistryEvent,
)

# Request statuses
STATUS_PENDING = "pending"
STATUS_GRANTED = "granted"
STATUS_DENIED = "denied"
STATUS_REVOKED = "revoked"

_RESOLUTIONS = {
    ACCESS_GRANTED: STATUS_GRANTED,
    ACCESS_DENIED: STATUS_DENIED,
}


@dataclass
class AccessRequest:
    """One request by one user on one record, and its outcome so far."""

    evidence_id: int
    requester: str
    requested_at: datetime
    status: str = STATUS_PENDING
    resolved_at: datetime | None = None  # grant/deny time
    revoked_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: dict[str, Any] = {
            "evidence_id": self.evidence_id,
            "requester": self.requester,
            "requested_at": self.requested_at.isoformat(),
            "status": self.status,
        }
        if self.resolved_at is not None:
            result["resolved_at"] = self.resolved_at.isoformat()
        if self.revoked_at is not None:
            result["revoked_at"] = self.revoked_at.isoformat()
        return result


def fold_requests(events: Iterable[RegistryEvent]) -> list[AccessRequest]:
    """
    Fold access events into request rows, in request order.

    Events must be in chronological order. Each `access.requested` opens a new
    row; grant/deny close the user's open row and revoke marks the user's
    granted row. Events for other types are ignored.
    """
    requests: list[AccessRequest] = []
    open_rows: dict[tuple[int, str], AccessRequest] = {}

    for event in events:
        if event.event_type == ACCESS_REQUESTED:
            row = AccessRequest(
                evidence_id=event.evidence_id,
                requester=event.payload.get("requester", event.actor),
                requested_at=event.timestamp,
            )
            requests.append(row)
            open_rows[(event.evidence_id, row.requester)] = row
            continue

        user = event.user
        if user is None:
            continue
        key = (event.evidence_id, user)
        row = open_rows.get(key)
        if row is None:
            continue

        if event.event_type in _RESOLUTIONS:
            row.status = _RESOLUTIONS[event.event_type]
            row.resolved_at = event.timestamp
            if row.status == STATUS_DENIED:
                del open_rows[key]
        elif event.event_type == ACCESS_REVOKED and row.status == STATUS_GRANTED:
            row.status = STATUS_REVOKED
            row.revoked_at = event.timestamp
            del open_rows[key]

    return requests
