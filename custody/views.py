"""
Caller-specific projections of evidence records.

The full record always exists in the store; this layer is the only place
records leave the registry, and it blanks `content_ref` and `key_blob` for
callers without access.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .errors import NotFound, Unauthorized
from .identity import Identity
from .ledger import AccessEntry, AccessState, PermissionLedger
from .store import RegistryStore


@dataclass(frozen=True)
class EvidenceView:
    """What one caller is allowed to see of one record."""

    id: int
    owner: Identity
    content_ref: str
    key_blob: str
    description: str
    created_at: datetime
    active: bool
    has_access: bool
    has_requested: bool
    is_owner: bool
    pending_count: int | None = None  # owner-only

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: dict[str, Any] = {
            "id": self.id,
            "owner": self.owner.value,
            "content_ref": self.content_ref,
            "key_blob": self.key_blob,
            "description": self.description,
            "created_at": self.created_at.isoformat(),
            "active": self.active,
            "has_access": self.has_access,
            "has_requested": self.has_requested,
            "is_owner": self.is_owner,
        }
        if self.pending_count is not None:
            result["pending_count"] = self.pending_count
        return result


class RegistryQueries:
    """Read side of the registry: views, owner listings, permission checks."""

    def __init__(self, store: RegistryStore, ledger: PermissionLedger):
        self.store = store
        self.ledger = ledger

    def view(self, evidence_id: int, caller: Identity) -> EvidenceView:
        record = self.store.get(evidence_id)
        is_owner = caller == record.owner
        state = AccessState.NONE if is_owner else self.ledger.state(evidence_id, caller)
        has_access = is_owner or state is AccessState.GRANTED

        return EvidenceView(
            id=record.id,
            owner=record.owner,
            content_ref=record.content_ref if has_access else "",
            key_blob=record.key_blob if has_access else "",
            description=record.description,
            created_at=record.created_at,
            active=record.active,
            has_access=has_access,
            has_requested=state is AccessState.PENDING,
            is_owner=is_owner,
            pending_count=len(self.ledger.pending(evidence_id)) if is_owner else None,
        )

    def _require_owner(self, evidence_id: int, caller: Identity) -> None:
        if self.store.get(evidence_id).owner != caller:
            raise Unauthorized(evidence_id, caller)

    def list_pending(self, evidence_id: int, caller: Identity) -> list[Identity]:
        self._require_owner(evidence_id, caller)
        return [entry.user for entry in self.ledger.pending(evidence_id)]

    def list_granted(self, evidence_id: int, caller: Identity) -> list[Identity]:
        self._require_owner(evidence_id, caller)
        return [entry.user for entry in self.ledger.granted(evidence_id)]

    def pending_entries(self, evidence_id: int, caller: Identity) -> list[AccessEntry]:
        """Like list_pending, with request timestamps."""
        self._require_owner(evidence_id, caller)
        return self.ledger.pending(evidence_id)

    def granted_entries(self, evidence_id: int, caller: Identity) -> list[AccessEntry]:
        """Like list_granted, with grant timestamps."""
        self._require_owner(evidence_id, caller)
        return self.ledger.granted(evidence_id)

    def list_by_owner(self, owner: Identity) -> list[int]:
        return self.store.list_by_owner(owner)

    def list_owned_views(self, owner: Identity) -> list[EvidenceView]:
        """Views of every record `owner` holds, oldest first."""
        return [self.view(evidence_id, owner) for evidence_id in self.store.list_by_owner(owner)]

    def has_permission(self, evidence_id: int, user: Identity) -> bool:
        """Public check: owner or granted. Unknown ids have no permissions."""
        try:
            return self.ledger.has_permission(evidence_id, user)
        except NotFound:
            return False
