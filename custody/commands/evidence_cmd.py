"""Evidence record CLI commands: submit, show, owned, activation."""

from __future__ import annotations

import json

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..config import RegistryConfig
from ..errors import RegistryError
from ..identity import as_identity
from . import open_registry


def run_submit(
    config: RegistryConfig,
    caller: str,
    content_ref: str,
    key_blob: str,
    *,
    description: str = "",
    output_json: bool = False,
) -> int:
    err = Console(stderr=True)
    if not content_ref.strip():
        err.print("content_ref must not be empty", style="bold red")
        return 1

    try:
        registry = open_registry(config)
        evidence_id = registry.submit(caller, content_ref, key_blob, description)
    except RegistryError as e:
        err.print(str(e), style="bold red", markup=False)
        return 1

    if output_json:
        print(json.dumps({"id": evidence_id}))
    else:
        err.print(f"submitted: evidence {evidence_id}", style="green")
    return 0


def run_show(config: RegistryConfig, caller: str, evidence_id: int, *, output_json: bool = False) -> int:
    """Show one record as `caller` sees it."""
    err = Console(stderr=True)
    try:
        view = open_registry(config).view(evidence_id, caller)
    except RegistryError as e:
        err.print(str(e), style="bold red", markup=False)
        return 1

    if output_json:
        print(json.dumps(view.to_dict(), indent=2, sort_keys=True))
        return 0

    console = Console()
    console.print(f"Evidence #{view.id}", style="bold")
    console.print(f"owner: {escape(view.owner.value)}")
    console.print(f"description: {escape(view.description)}")
    console.print(f"created: {view.created_at.strftime('%Y-%m-%d %H:%M:%S')}")
    console.print(f"active: {'yes' if view.active else 'no'}")
    if view.has_access:
        console.print(f"content_ref: {escape(view.content_ref)}")
        console.print(f"key_blob: {escape(view.key_blob)}")
    elif view.has_requested:
        console.print("access: requested", style="yellow")
    else:
        console.print("access: none (request with `custody request`)", style="dim")
    if view.pending_count:
        console.print(f"pending requests: {view.pending_count}", style="yellow")
    return 0


def run_owned(config: RegistryConfig, owner: str, *, output_json: bool = False) -> int:
    """List every record `owner` holds, with pending request counts."""
    err = Console(stderr=True)
    try:
        views = open_registry(config).list_owned_views(owner)
    except RegistryError as e:
        err.print(str(e), style="bold red", markup=False)
        return 1

    if output_json:
        print(json.dumps([v.to_dict() for v in views], indent=2, sort_keys=True))
        return 0

    console = Console()
    table = Table(title=f"Evidence owned by {escape(as_identity(owner).value)}")
    table.add_column("id", style="cyan", no_wrap=True)
    table.add_column("description")
    table.add_column("created", style="dim")
    table.add_column("active")
    table.add_column("pending", justify="right")
    table.add_column("content_ref", style="dim")

    for v in views:
        ref = v.content_ref
        table.add_row(
            str(v.id),
            escape(v.description),
            v.created_at.strftime("%Y-%m-%d %H:%M"),
            "yes" if v.active else "no",
            str(v.pending_count or 0),
            escape(ref[:12] + "…" if len(ref) > 12 else ref),
        )

    console.print(table)
    console.print(f"\nEvidence: {len(views)} total")
    return 0


def run_set_active(config: RegistryConfig, caller: str, evidence_id: int, *, active: bool) -> int:
    err = Console(stderr=True)
    try:
        open_registry(config).set_active(evidence_id, caller, active)
    except RegistryError as e:
        err.print(str(e), style="bold red", markup=False)
        return 1
    err.print(f"evidence {evidence_id}: {'active' if active else 'inactive'}", style="green")
    return 0
