"""
Permission ledger: the authoritative per-(evidence, user) access state.

Each non-owner user on a record is in exactly one AccessState. The ordered
pending/granted collections are secondary indexes over that state and are
always updated in the same step as the state itself, so no reader can see a
user in both collections or in neither.

Every operation validates all of its preconditions before mutating anything;
a failed call leaves the ledger exactly as it found it.

State machine per (evidence, user):

    NONE --request--> PENDING --grant--> GRANTED
                      PENDING --deny---> NONE
                                         GRANTED --revoke--> NONE
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from .errors import InvalidState, Unauthorized
from .identity import Identity
from .store import EvidenceRecord, RegistryStore


class AccessState(str, Enum):
    """Access state of a non-owner user on one evidence record."""

    NONE = "none"
    PENDING = "pending"
    GRANTED = "granted"


@dataclass(frozen=True)
class AccessEntry:
    """Member of a pending or granted collection."""

    user: Identity
    since: datetime  # requested_at for pending, granted_at for granted

    def to_dict(self) -> dict[str, Any]:
        return {"user": self.user.value, "since": self.since.isoformat()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AccessEntry:
        return cls(user=Identity(data["user"]), since=datetime.fromisoformat(data["since"]))


@dataclass
class PermissionTable:
    """
    Access rows for a single evidence record.

    `states` holds every user that has ever requested (rows are never
    dropped; a denied or revoked user returns to NONE). `pending` and
    `granted` are insertion-ordered dicts, giving O(1) removal while the
    surviving members keep their order.
    """

    states: dict[Identity, AccessState] = field(default_factory=dict)
    pending: dict[Identity, datetime] = field(default_factory=dict)
    granted: dict[Identity, datetime] = field(default_factory=dict)

    def state(self, user: Identity) -> AccessState:
        return self.states.get(user, AccessState.NONE)

    def check(self) -> None:
        """Raise ValueError if the indexes disagree with the states."""
        pending = {u for u, s in self.states.items() if s is AccessState.PENDING}
        granted = {u for u, s in self.states.items() if s is AccessState.GRANTED}
        if pending != set(self.pending):
            raise ValueError("pending index out of sync")
        if granted != set(self.granted):
            raise ValueError("granted index out of sync")

    def to_dict(self) -> dict[str, Any]:
        return {
            "pending": [AccessEntry(u, t).to_dict() for u, t in self.pending.items()],
            "granted": [AccessEntry(u, t).to_dict() for u, t in self.granted.items()],
            "inactive": [u.value for u, s in self.states.items() if s is AccessState.NONE],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PermissionTable:
        table = cls()
        for raw in data.get("inactive", []):
            table.states[Identity(raw)] = AccessState.NONE
        for raw in data.get("pending", []):
            entry = AccessEntry.from_dict(raw)
            table.states[entry.user] = AccessState.PENDING
            table.pending[entry.user] = entry.since
        for raw in data.get("granted", []):
            entry = AccessEntry.from_dict(raw)
            if entry.user in table.pending:
                raise ValueError(f"{entry.user} is both pending and granted")
            table.states[entry.user] = AccessState.GRANTED
            table.granted[entry.user] = entry.since
        return table


class PermissionLedger:
    """
    Enforces the request/grant/deny/revoke state machine.

    Ownership is read from the injected RegistryStore; the owner never gets a
    row here since owning a record already implies full access. The ledger does
    not deliver events itself: callers emit after a transition returns.
    """

    def __init__(self, store: RegistryStore, *, clock: Callable[[], datetime] | None = None):
        self.store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._tables: dict[int, PermissionTable] = {}

    def _table(self, evidence_id: int) -> PermissionTable:
        return self._tables.setdefault(evidence_id, PermissionTable())

    def _owned_record(self, evidence_id: int, caller: Identity) -> EvidenceRecord:
        record = self.store.get(evidence_id)
        if caller != record.owner:
            raise Unauthorized(evidence_id, caller)
        return record

    # --- Reads ---

    def state(self, evidence_id: int, user: Identity) -> AccessState:
        """Current state of `user` on the record (NONE for the owner)."""
        self.store.get(evidence_id)
        table = self._tables.get(evidence_id)
        return table.state(user) if table else AccessState.NONE

    def pending(self, evidence_id: int) -> list[AccessEntry]:
        """Users awaiting a decision, in request order."""
        self.store.get(evidence_id)
        table = self._tables.get(evidence_id)
        if table is None:
            return []
        return [AccessEntry(u, t) for u, t in table.pending.items()]

    def granted(self, evidence_id: int) -> list[AccessEntry]:
        """Users currently granted, in grant order."""
        self.store.get(evidence_id)
        table = self._tables.get(evidence_id)
        if table is None:
            return []
        return [AccessEntry(u, t) for u, t in table.granted.items()]

    def has_permission(self, evidence_id: int, user: Identity) -> bool:
        record = self.store.get(evidence_id)
        if user == record.owner:
            return True
        return self.state(evidence_id, user) is AccessState.GRANTED

    # --- Transitions ---

    def request_access(self, evidence_id: int, requester: Identity) -> AccessEntry:
        record = self.store.get(evidence_id)
        if requester == record.owner:
            raise InvalidState("self-request", evidence_id, requester)

        table = self._tables.get(evidence_id)
        current = table.state(requester) if table else AccessState.NONE
        if current is AccessState.PENDING:
            raise InvalidState("already-pending", evidence_id, requester)
        if current is AccessState.GRANTED:
            raise InvalidState("already-granted", evidence_id, requester)

        now = self._clock()
        table = self._table(evidence_id)
        table.states[requester] = AccessState.PENDING
        table.pending[requester] = now
        return AccessEntry(requester, now)

    def grant_access(self, evidence_id: int, caller: Identity, user: Identity) -> AccessEntry:
        self._owned_record(evidence_id, caller)
        table = self._tables.get(evidence_id)
        if table is None or table.state(user) is not AccessState.PENDING:
            raise InvalidState("not-pending", evidence_id, user)

        now = self._clock()
        table.states[user] = AccessState.GRANTED
        del table.pending[user]
        table.granted[user] = now
        return AccessEntry(user, now)

    def deny_access(self, evidence_id: int, caller: Identity, user: Identity) -> AccessEntry:
        self._owned_record(evidence_id, caller)
        table = self._tables.get(evidence_id)
        if table is None or table.state(user) is not AccessState.PENDING:
            raise InvalidState("not-pending", evidence_id, user)

        requested_at = table.pending.pop(user)
        table.states[user] = AccessState.NONE
        return AccessEntry(user, requested_at)

    def revoke_access(self, evidence_id: int, caller: Identity, user: Identity) -> AccessEntry:
        self._owned_record(evidence_id, caller)
        table = self._tables.get(evidence_id)
        if table is None or table.state(user) is not AccessState.GRANTED:
            raise InvalidState("not-granted", evidence_id, user)

        granted_at = table.granted.pop(user)
        table.states[user] = AccessState.NONE
        return AccessEntry(user, granted_at)

    # --- Persistence ---

    def snapshot(self) -> dict[str, Any]:
        """Serialize every table, keyed by evidence id."""
        return {str(eid): table.to_dict() for eid, table in sorted(self._tables.items())}

    def restore(self, data: dict[str, Any]) -> None:
        """Replace all tables with persisted ones. Records must already be loaded."""
        tables: dict[int, PermissionTable] = {}
        for raw_id, raw_table in data.items():
            evidence_id = int(raw_id)
            self.store.get(evidence_id)
            tables[evidence_id] = PermissionTable.from_dict(raw_table)
        previous, self._tables = self._tables, tables
        try:
            self.check_invariants()
        except ValueError:
            self._tables = previous
            raise

    def check_invariants(self) -> None:
        """Raise ValueError unless every table agrees with its indexes and has no owner row."""
        for evidence_id, table in self._tables.items():
            table.check()
            owner = self.store.get(evidence_id).owner
            if owner in table.states:
                raise ValueError(f"Owner {owner} has a permission row on evidence {evidence_id}")
