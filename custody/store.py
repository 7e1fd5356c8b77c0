"""
Registry store for evidence records.

Records are immutable once created; only the `active` flag may change, and
that is done by replacing the record rather than mutating it. The owner index
is append-only: ids are added in creation order and never removed.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, Iterator

from .allocator import IdAllocator
from .errors import NotFound
from .identity import Identity


@dataclass(frozen=True)
class EvidenceRecord:
    """A piece of referenced evidence and who owns it."""

    id: int
    owner: Identity
    content_ref: str  # content-addressed handle into the external store
    key_blob: str  # wrapped decryption material
    description: str
    created_at: datetime
    active: bool = True

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "id": self.id,
            "owner": self.owner.value,
            "content_ref": self.content_ref,
            "key_blob": self.key_blob,
            "description": self.description,
            "created_at": self.created_at.isoformat(),
            "active": self.active,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EvidenceRecord:
        """Reconstruct from JSON dict."""
        return cls(
            id=int(data["id"]),
            owner=Identity(data["owner"]),
            content_ref=data["content_ref"],
            key_blob=data["key_blob"],
            description=data.get("description", ""),
            created_at=datetime.fromisoformat(data["created_at"]),
            active=bool(data.get("active", True)),
        )


class RegistryStore:
    """
    Holds evidence records and the owner -> ids index.

    Constructed once and injected into the permission ledger and the query
    layer; it owns no permission state itself.
    """

    def __init__(
        self,
        allocator: IdAllocator | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ):
        self.allocator = allocator or IdAllocator()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._records: dict[int, EvidenceRecord] = {}
        self._by_owner: dict[Identity, list[int]] = {}

    def create(self, owner: Identity, content_ref: str, key_blob: str, description: str) -> int:
        """Store a new record and return its id."""
        evidence_id = self.allocator.next()
        record = EvidenceRecord(
            id=evidence_id,
            owner=owner,
            content_ref=content_ref,
            key_blob=key_blob,
            description=description,
            created_at=self._clock(),
        )
        self._records[evidence_id] = record
        self._by_owner.setdefault(owner, []).append(evidence_id)
        return evidence_id

    def get(self, evidence_id: int) -> EvidenceRecord:
        """Return the record or raise NotFound."""
        record = self._records.get(evidence_id)
        if record is None:
            raise NotFound(evidence_id)
        return record

    def list_by_owner(self, owner: Identity) -> list[int]:
        """Ids owned by `owner`, in creation order."""
        return list(self._by_owner.get(owner, []))

    def set_active(self, evidence_id: int, active: bool) -> EvidenceRecord:
        """Toggle the soft lifecycle flag. Returns the updated record."""
        record = replace(self.get(evidence_id), active=active)
        self._records[evidence_id] = record
        return record

    def records(self) -> Iterator[EvidenceRecord]:
        """All records in id order."""
        for evidence_id in sorted(self._records):
            yield self._records[evidence_id]

    def load(self, record: EvidenceRecord) -> None:
        """
        Insert a previously persisted record.

        Used only when restoring state; the allocator must already be seeded
        at or beyond the record's id.
        """
        if record.id in self._records:
            raise ValueError(f"Duplicate evidence id in persisted state: {record.id}")
        if record.id > self.allocator.current:
            raise ValueError(
                f"Persisted evidence id {record.id} exceeds allocator counter {self.allocator.current}"
            )
        self._records[record.id] = record
        self._by_owner.setdefault(record.owner, []).append(record.id)

    def __contains__(self, evidence_id: object) -> bool:
        return evidence_id in self._records

    def __len__(self) -> int:
        return len(self._records)
