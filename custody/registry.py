"""
Evidence registry: the operation surface over store, ledger, and queries.

EvidenceRegistry owns one RegistryStore, PermissionLedger, RegistryQueries,
EventEmitter and EventJournal, all constructed once and shared. Writes run
one at a time under a re-entrant lock; reads take the same lock so they only
ever see committed state.

A write either applies completely or not at all. Preconditions are checked
before anything changes, and when a state file is attached the new state is
saved before the write is considered committed; a failed save restores the
previous in-memory state. Events are emitted only after commit.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Iterator

from .allocator import IdAllocator
from .config import RegistryConfig
from .errors import PersistenceError, RegistryError, Unauthorized
from .events import (
    ACCESS_DENIED,
    ACCESS_GRANTED,
    ACCESS_REQUESTED,
    ACCESS_REVOKED,
    EVIDENCE_DEACTIVATED,
    EVIDENCE_REACTIVATED,
    EVIDENCE_SUBMITTED,
    EventEmitter,
    Observer,
    RegistryEvent,
    create_event,
)
from .history import AccessRequest, fold_requests
from .identity import Identity, as_identity
from .journal import EventJournal
from .ledger import AccessEntry, AccessState, PermissionLedger
from .persistence import StateFile
from .store import EvidenceRecord, RegistryStore
from .views import EvidenceView, RegistryQueries

logger = logging.getLogger(__name__)


class EvidenceRegistry:
    def __init__(
        self,
        *,
        journal: EventJournal | None = None,
        state_file: StateFile | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._lock = threading.RLock()
        self._clock = clock
        self.state_file = state_file

        self.store = RegistryStore(IdAllocator(), clock=clock)
        self.ledger = PermissionLedger(self.store, clock=clock)
        self.queries = RegistryQueries(self.store, self.ledger)

        self.emitter = EventEmitter()
        self.journal = journal if journal is not None else EventJournal()
        self.emitter.subscribe(self.journal)

        state = state_file.load() if state_file is not None else None
        if state is not None:
            try:
                self._restore(state)
            except (KeyError, TypeError, ValueError) as e:
                raise PersistenceError(f"Invalid state file {state_file.path}: {e}") from e

        # Ids named in the journal are never reissued, even when no state was
        # saved alongside it.
        last_logged = self.journal.last_evidence_id()
        if last_logged > self.store.allocator.current:
            if state is not None:
                raise PersistenceError(
                    f"Journal refers to evidence {last_logged} but saved state ends at "
                    f"{self.store.allocator.current}"
                )
            logger.info("Continuing evidence ids after %d from the journal", last_logged)
            self.store.allocator.advance_to(last_logged)

    @classmethod
    def open(cls, config: RegistryConfig, *, clock: Callable[[], datetime] | None = None) -> EvidenceRegistry:
        """Registry backed by the files under `config.data_dir`."""
        return cls(
            journal=EventJournal(config.journal_path if config.journal else None),
            state_file=StateFile(config.state_path) if config.persist else None,
            clock=clock,
        )

    # --- Plumbing ---

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an event observer. Returns an unsubscribe callable."""
        return self.emitter.subscribe(observer)

    def _event(self, event_type: str, evidence_id: int, actor: Identity, **payload: Any) -> RegistryEvent:
        timestamp = self._clock() if self._clock else None
        return create_event(event_type, evidence_id, actor.value, payload=payload, timestamp=timestamp)

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[list[RegistryEvent]]:
        """
        Run one write under the lock.

        The body appends the events describing its transition to the yielded
        list; they are delivered only once the write has committed, still under
        the lock so observers see events in commit order.
        """
        with self._lock:
            events: list[RegistryEvent] = []
            before = self.snapshot() if self.state_file is not None else None
            try:
                yield events
                if self.state_file is not None:
                    self.state_file.save(self.snapshot())
            except RegistryError as e:
                logger.debug("%s rejected: %s", operation, e)
                raise
            except Exception:
                if before is not None:
                    self._restore(before)
                logger.error("%s failed to commit; state rolled back", operation)
                raise
            for event in events:
                self.emitter.emit(event)

    def snapshot(self) -> dict[str, Any]:
        """Serializable copy of the full registry state."""
        with self._lock:
            return {
                "last_id": self.store.allocator.current,
                "records": [record.to_dict() for record in self.store.records()],
                "permissions": self.ledger.snapshot(),
            }

    def _restore(self, state: dict[str, Any]) -> None:
        store = RegistryStore(IdAllocator(int(state.get("last_id", 0))), clock=self._clock)
        for raw in state.get("records", []):
            store.load(EvidenceRecord.from_dict(raw))
        ledger = PermissionLedger(store, clock=self._clock)
        ledger.restore(state.get("permissions", {}))

        self.store = store
        self.ledger = ledger
        self.queries = RegistryQueries(store, ledger)

    # --- Writes ---

    def submit(
        self,
        caller: Identity | str,
        content_ref: str,
        key_blob: str,
        description: str = "",
    ) -> int:
        """Create a record owned by `caller` and return its id."""
        owner = as_identity(caller)
        with self._transaction("submit") as events:
            evidence_id = self.store.create(owner, content_ref, key_blob, description)
            logger.debug("evidence %s submitted by %s", evidence_id, owner)
            events.append(
                self._event(EVIDENCE_SUBMITTED, evidence_id, owner, owner=owner.value, content_ref=content_ref)
            )
        return evidence_id

    def request_access(self, evidence_id: int, requester: Identity | str) -> AccessEntry:
        user = as_identity(requester)
        with self._transaction("request_access") as events:
            entry = self.ledger.request_access(evidence_id, user)
            logger.debug("%s requested access to evidence %s", user, evidence_id)
            events.append(self._event(ACCESS_REQUESTED, evidence_id, user, requester=user.value))
        return entry

    def grant_access(self, evidence_id: int, caller: Identity | str, user: Identity | str) -> AccessEntry:
        owner, target = as_identity(caller), as_identity(user)
        with self._transaction("grant_access") as events:
            entry = self.ledger.grant_access(evidence_id, owner, target)
            logger.debug("%s granted %s access to evidence %s", owner, target, evidence_id)
            events.append(self._event(ACCESS_GRANTED, evidence_id, owner, user=target.value))
        return entry

    def deny_access(self, evidence_id: int, caller: Identity | str, user: Identity | str) -> AccessEntry:
        owner, target = as_identity(caller), as_identity(user)
        with self._transaction("deny_access") as events:
            entry = self.ledger.deny_access(evidence_id, owner, target)
            logger.debug("%s denied %s on evidence %s", owner, target, evidence_id)
            events.append(self._event(ACCESS_DENIED, evidence_id, owner, user=target.value))
        return entry

    def revoke_access(self, evidence_id: int, caller: Identity | str, user: Identity | str) -> AccessEntry:
        owner, target = as_identity(caller), as_identity(user)
        with self._transaction("revoke_access") as events:
            entry = self.ledger.revoke_access(evidence_id, owner, target)
            logger.debug("%s revoked %s on evidence %s", owner, target, evidence_id)
            events.append(self._event(ACCESS_REVOKED, evidence_id, owner, user=target.value))
        return entry

    def set_active(self, evidence_id: int, caller: Identity | str, active: bool) -> EvidenceRecord:
        """
        Toggle the record's `active` flag (owner only).

        Setting the flag to its current value is a no-op and emits nothing.
        """
        owner = as_identity(caller)
        with self._transaction("set_active") as events:
            record = self.store.get(evidence_id)
            if record.owner != owner:
                raise Unauthorized(evidence_id, owner)
            if record.active != active:
                record = self.store.set_active(evidence_id, active)
                event_type = EVIDENCE_REACTIVATED if active else EVIDENCE_DEACTIVATED
                events.append(self._event(event_type, evidence_id, owner))
        return record

    # --- Reads ---

    def get(self, evidence_id: int) -> EvidenceRecord:
        """Unredacted record. For trusted callers only; use view() otherwise."""
        with self._lock:
            return self.store.get(evidence_id)

    def view(self, evidence_id: int, caller: Identity | str) -> EvidenceView:
        with self._lock:
            return self.queries.view(evidence_id, as_identity(caller))

    def list_pending(self, evidence_id: int, caller: Identity | str) -> list[Identity]:
        with self._lock:
            return self.queries.list_pending(evidence_id, as_identity(caller))

    def list_granted(self, evidence_id: int, caller: Identity | str) -> list[Identity]:
        with self._lock:
            return self.queries.list_granted(evidence_id, as_identity(caller))

    def pending_entries(self, evidence_id: int, caller: Identity | str) -> list[AccessEntry]:
        with self._lock:
            return self.queries.pending_entries(evidence_id, as_identity(caller))

    def granted_entries(self, evidence_id: int, caller: Identity | str) -> list[AccessEntry]:
        with self._lock:
            return self.queries.granted_entries(evidence_id, as_identity(caller))

    def list_by_owner(self, owner: Identity | str) -> list[int]:
        with self._lock:
            return self.queries.list_by_owner(as_identity(owner))

    def list_owned_views(self, owner: Identity | str) -> list[EvidenceView]:
        with self._lock:
            return self.queries.list_owned_views(as_identity(owner))

    def has_permission(self, evidence_id: int, user: Identity | str) -> bool:
        with self._lock:
            return self.queries.has_permission(evidence_id, as_identity(user))

    def access_state(self, evidence_id: int, user: Identity | str) -> AccessState:
        with self._lock:
            return self.ledger.state(evidence_id, as_identity(user))

    # --- Audit ---

    def audit_trail(self, evidence_id: int, caller: Identity | str) -> list[RegistryEvent]:
        """Journal events for a record (owner only)."""
        owner = as_identity(caller)
        with self._lock:
            if self.store.get(evidence_id).owner != owner:
                raise Unauthorized(evidence_id, owner)
            return self.journal.audit_trail(evidence_id)

    def access_requests(self, evidence_id: int, caller: Identity | str) -> list[AccessRequest]:
        """Every request ever made on a record and its outcome (owner only)."""
        return fold_requests(self.audit_trail(evidence_id, caller))

    def all_access_requests(self, owner: Identity | str) -> list[AccessRequest]:
        """Request history across all of `owner`'s records, newest first."""
        owner = as_identity(owner)
        with self._lock:
            rows: list[AccessRequest] = []
            for evidence_id in self.store.list_by_owner(owner):
                rows.extend(fold_requests(self.journal.audit_trail(evidence_id)))
        rows.sort(key=lambda r: r.requested_at, reverse=True)
        return rows
