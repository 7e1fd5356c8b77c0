"""Access lifecycle CLI commands: request, decide, list, audit."""

from __future__ import annotations

import json
from typing import Callable

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..config import RegistryConfig
from ..errors import RegistryError
from ..events import RegistryEvent
from ..identity import Identity
from ..ledger import AccessEntry
from ..registry import EvidenceRegistry
from . import open_registry


def run_request(config: RegistryConfig, caller: str, evidence_id: int) -> int:
    err = Console(stderr=True)
    try:
        open_registry(config).request_access(evidence_id, caller)
    except RegistryError as e:
        err.print(str(e), style="bold red", markup=False)
        return 1
    err.print(f"access requested: evidence {evidence_id}", style="green")
    return 0


def _run_decision(
    config: RegistryConfig,
    evidence_id: int,
    action: str,
    op: Callable[[EvidenceRegistry], AccessEntry],
) -> int:
    err = Console(stderr=True)
    try:
        entry = op(open_registry(config))
    except RegistryError as e:
        err.print(str(e), style="bold red", markup=False)
        return 1
    err.print(f"{action}: {escape(entry.user.value)} on evidence {evidence_id}", style="green")
    return 0


def run_grant(config: RegistryConfig, caller: str, evidence_id: int, user: str) -> int:
    return _run_decision(
        config, evidence_id, "granted",
        lambda r: r.grant_access(evidence_id, caller, user),
    )


def run_deny(config: RegistryConfig, caller: str, evidence_id: int, user: str) -> int:
    return _run_decision(
        config, evidence_id, "denied",
        lambda r: r.deny_access(evidence_id, caller, user),
    )


def run_revoke(config: RegistryConfig, caller: str, evidence_id: int, user: str) -> int:
    return _run_decision(
        config, evidence_id, "revoked",
        lambda r: r.revoke_access(evidence_id, caller, user),
    )


def _print_entries(title: str, entries: list[AccessEntry], since_label: str, output_json: bool) -> None:
    if output_json:
        print(json.dumps([e.to_dict() for e in entries], indent=2))
        return
    console = Console()
    table = Table(title=title)
    table.add_column("user", style="cyan", no_wrap=True)
    table.add_column(since_label, style="dim")
    for entry in entries:
        table.add_row(escape(entry.user.short()), entry.since.strftime("%Y-%m-%d %H:%M:%S"))
    console.print(table)
    console.print(f"\nUsers: {len(entries)} total")


def run_pending(config: RegistryConfig, caller: str, evidence_id: int, *, output_json: bool = False) -> int:
    err = Console(stderr=True)
    try:
        entries = open_registry(config).pending_entries(evidence_id, caller)
    except RegistryError as e:
        err.print(str(e), style="bold red", markup=False)
        return 1
    _print_entries(f"Pending: evidence {evidence_id}", entries, "requested", output_json)
    return 0


def run_granted(config: RegistryConfig, caller: str, evidence_id: int, *, output_json: bool = False) -> int:
    err = Console(stderr=True)
    try:
        entries = open_registry(config).granted_entries(evidence_id, caller)
    except RegistryError as e:
        err.print(str(e), style="bold red", markup=False)
        return 1
    _print_entries(f"Granted: evidence {evidence_id}", entries, "granted", output_json)
    return 0


def run_check(config: RegistryConfig, evidence_id: int, user: str) -> int:
    """Exit 0 if `user` may read the record, 1 otherwise."""
    try:
        allowed = open_registry(config).has_permission(evidence_id, user)
    except RegistryError as e:
        Console(stderr=True).print(str(e), style="bold red", markup=False)
        return 1
    Console().print(f"{escape(Identity(user).value)}: {'allowed' if allowed else 'denied'}")
    return 0 if allowed else 1


def run_requests(
    config: RegistryConfig,
    caller: str,
    evidence_id: int | None = None,
    *,
    output_json: bool = False,
) -> int:
    """Request history for one record, or for all of the caller's records."""
    err = Console(stderr=True)
    try:
        registry = open_registry(config)
        if evidence_id is None:
            rows = registry.all_access_requests(caller)
        else:
            rows = registry.access_requests(evidence_id, caller)
    except RegistryError as e:
        err.print(str(e), style="bold red", markup=False)
        return 1

    if output_json:
        print(json.dumps([r.to_dict() for r in rows], indent=2))
        return 0

    console = Console()
    title = "Access Requests" if evidence_id is None else f"Access Requests: evidence {evidence_id}"
    table = Table(title=title)
    table.add_column("evidence", style="cyan", no_wrap=True)
    table.add_column("requester", no_wrap=True)
    table.add_column("requested", style="dim")
    table.add_column("status")

    status_styles = {"pending": "yellow", "granted": "green", "denied": "red", "revoked": "dim"}
    for r in rows:
        table.add_row(
            str(r.evidence_id),
            escape(Identity(r.requester).short()),
            r.requested_at.strftime("%Y-%m-%d %H:%M:%S"),
            f"[{status_styles[r.status]}]{r.status}[/]" if r.status in status_styles else escape(r.status),
        )
    console.print(table)
    console.print(f"\nRequests: {len(rows)} total")
    return 0


def _format_event_details(event: RegistryEvent) -> str:
    if not event.payload:
        return ""
    return escape(", ".join(f"{k}={v}" for k, v in sorted(event.payload.items())))


def run_audit(
    config: RegistryConfig,
    caller: str,
    evidence_id: int,
    *,
    output_json: bool = False,
    limit: int | None = None,
) -> int:
    """Show the journal for a record in chronological order (owner only)."""
    err = Console(stderr=True)
    try:
        events = open_registry(config).audit_trail(evidence_id, caller)
    except RegistryError as e:
        err.print(str(e), style="bold red", markup=False)
        return 1
    if limit and limit > 0:
        events = events[:limit]

    if output_json:
        print(json.dumps([e.to_dict() for e in events], indent=2))
        return 0

    console = Console()
    table = Table(title=f"Audit Trail: evidence {evidence_id}")
    table.add_column("Timestamp", style="dim")
    table.add_column("Event Type", style="cyan")
    table.add_column("Actor")
    table.add_column("Details")
    for event in events:
        table.add_row(
            event.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            event.event_type,
            escape(Identity(event.actor).short()),
            _format_event_details(event),
        )
    console.print(table)
    console.print(f"\nEvents: {len(events)} total")
    return 0
