from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from custody.events import (
    ACCESS_DENIED,
    ACCESS_GRANTED,
    ACCESS_REQUESTED,
    ACCESS_REVOKED,
    EVIDENCE_SUBMITTED,
    EventEmitter,
    RegistryEvent,
    create_event,
)
from custody.history import fold_requests
from custody.journal import EventJournal

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _at(seconds: int) -> datetime:
    return T0 + timedelta(seconds=seconds)


def test_event_rejects_unknown_type() -> None:
    with pytest.raises(ValueError, match="Invalid event_type"):
        RegistryEvent(event_type="evidence.deleted", evidence_id=1, actor="a", timestamp=T0)


def test_event_json_roundtrip() -> None:
    event = create_event(EVIDENCE_SUBMITTED, 1, "alice", payload={"owner": "alice", "content_ref": "Qm"}, timestamp=T0)
    line = event.to_json()
    assert "\n" not in line
    assert RegistryEvent.from_json(line) == event


def test_event_user_property() -> None:
    requested = create_event(ACCESS_REQUESTED, 1, "bob", payload={"requester": "bob"})
    granted = create_event(ACCESS_GRANTED, 1, "alice", payload={"user": "bob"})
    submitted = create_event(EVIDENCE_SUBMITTED, 1, "alice")
    assert requested.user == "bob"
    assert granted.user == "bob"
    assert submitted.user is None


def test_emitter_delivers_in_subscription_order() -> None:
    emitter = EventEmitter()
    seen: list[str] = []
    emitter.subscribe(lambda e: seen.append("first"))
    unsubscribe = emitter.subscribe(lambda e: seen.append("second"))

    emitter.emit(create_event(EVIDENCE_SUBMITTED, 1, "alice"))
    unsubscribe()
    emitter.emit(create_event(EVIDENCE_SUBMITTED, 2, "alice"))

    assert seen == ["first", "second", "first"]
    assert len(emitter) == 1


def test_emitter_isolates_failing_observer(caplog: pytest.LogCaptureFixture) -> None:
    emitter = EventEmitter()
    seen: list[int] = []

    def broken(event: RegistryEvent) -> None:
        raise RuntimeError("observer down")

    emitter.subscribe(broken)
    emitter.subscribe(lambda e: seen.append(e.evidence_id))

    with caplog.at_level(logging.WARNING, logger="custody.events"):
        emitter.emit(create_event(EVIDENCE_SUBMITTED, 5, "alice"))

    assert seen == [5]
    assert "failed on evidence.submitted" in caplog.text


def test_memory_journal_query() -> None:
    journal = EventJournal()
    journal(create_event(EVIDENCE_SUBMITTED, 1, "alice", timestamp=_at(0)))
    journal(create_event(ACCESS_REQUESTED, 1, "bob", payload={"requester": "bob"}, timestamp=_at(1)))
    journal(create_event(EVIDENCE_SUBMITTED, 2, "carol", timestamp=_at(2)))

    assert len(journal.query()) == 3
    assert journal.last_evidence_id() == 2
    assert [e.event_type for e in journal.audit_trail(1)] == [EVIDENCE_SUBMITTED, ACCESS_REQUESTED]
    assert [e.evidence_id for e in journal.query(event_type=EVIDENCE_SUBMITTED)] == [1, 2]
    assert [e.actor for e in journal.query(actor="bob")] == ["bob"]
    assert [e.evidence_id for e in journal.query(order="desc", limit=1)] == [2]
    assert journal.query(since=_at(2)) == [journal.query()[-1]]


def test_file_journal_appends_and_reloads(tmp_path: Path) -> None:
    path = tmp_path / ".custody" / "events.jsonl"
    journal = EventJournal(path)
    journal.append(create_event(EVIDENCE_SUBMITTED, 1, "alice", timestamp=_at(0)))
    journal.append(create_event(ACCESS_REQUESTED, 1, "bob", payload={"requester": "bob"}, timestamp=_at(1)))

    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2

    reopened = EventJournal(path)
    assert reopened.last_evidence_id() == 1
    reopened.append(create_event(ACCESS_GRANTED, 1, "alice", payload={"user": "bob"}, timestamp=_at(2)))
    assert [e.event_type for e in reopened.audit_trail(1)] == [
        EVIDENCE_SUBMITTED,
        ACCESS_REQUESTED,
        ACCESS_GRANTED,
    ]
    # Earlier lines untouched
    assert path.read_text(encoding="utf-8").splitlines()[:2] == lines


def test_fold_requests_tracks_outcomes() -> None:
    events = [
        create_event(EVIDENCE_SUBMITTED, 1, "alice", timestamp=_at(0)),
        create_event(ACCESS_REQUESTED, 1, "bob", payload={"requester": "bob"}, timestamp=_at(1)),
        create_event(ACCESS_REQUESTED, 1, "carol", payload={"requester": "carol"}, timestamp=_at(2)),
        create_event(ACCESS_GRANTED, 1, "alice", payload={"user": "bob"}, timestamp=_at(3)),
        create_event(ACCESS_DENIED, 1, "alice", payload={"user": "carol"}, timestamp=_at(4)),
        create_event(ACCESS_REQUESTED, 1, "carol", payload={"requester": "carol"}, timestamp=_at(5)),
        create_event(ACCESS_REVOKED, 1, "alice", payload={"user": "bob"}, timestamp=_at(6)),
    ]

    rows = fold_requests(events)

    assert [(r.requester, r.status) for r in rows] == [
        ("bob", "revoked"),
        ("carol", "denied"),
        ("carol", "pending"),
    ]
    assert rows[0].resolved_at == _at(3)
    assert rows[0].revoked_at == _at(6)
    assert rows[1].resolved_at == _at(4)
    assert rows[2].resolved_at is None
    assert rows[0].to_dict()["revoked_at"] == _at(6).isoformat()


def test_empty_journal_has_no_last_evidence_id(tmp_path: Path) -> None:
    assert EventJournal().last_evidence_id() == 0
    assert EventJournal(tmp_path / "missing.jsonl").last_evidence_id() == 0
