"""CLI entrypoint for custody."""

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler

from . import __version__
from .config import load_config
from .errors import ConfigError


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _identity(ctx: click.Context, param: click.Parameter, value: str | None) -> str | None:
    if value is not None and not value.strip():
        raise click.BadParameter("identity must not be blank")
    return value


def _caller(ctx: click.Context) -> str:
    caller = ctx.obj.get("caller")
    if not caller:
        raise click.UsageError("This command needs an identity. Pass --as IDENTITY or set CUSTODY_AS.")
    return caller


@click.group()
@click.version_option(__version__, prog_name="custody")
@click.option(
    "--home",
    type=click.Path(file_okay=False, dir_okay=True, path_type=Path),
    default=None,
    help="Registry data directory (defaults to ./.custody or CUSTODY_HOME)",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to custody.toml (defaults to ./custody.toml if present)",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Logging verbosity",
)
@click.option(
    "--as",
    "caller",
    envvar="CUSTODY_AS",
    default=None,
    metavar="IDENTITY",
    callback=_identity,
    help="Identity performing the operation (or CUSTODY_AS)",
)
@click.pass_context
def cli(
    ctx: click.Context,
    home: Path | None,
    config_path: Path | None,
    log_level: str | None,
    caller: str | None,
) -> None:
    """custody - evidence access-control registry.

    Owners submit evidence references; other identities request access;
    owners grant, deny, or revoke. Views redact the content reference and
    key material for anyone without access.
    """
    ctx.ensure_object(dict)
    try:
        config = load_config(config_path, overrides={"data_dir": home, "log_level": log_level})
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    _configure_logging(config.log_level)
    ctx.obj["config"] = config
    ctx.obj["caller"] = caller


# -----------------------------------------------------------------------------
# Evidence records
# -----------------------------------------------------------------------------


@cli.command()
@click.argument("content_ref")
@click.argument("key_blob")
@click.option("--description", "-d", default="", help="Free-text description")
@click.option("--json", "output_json", is_flag=True, help="Output the new id as JSON")
@click.pass_context
def submit(ctx: click.Context, content_ref: str, key_blob: str, description: str, output_json: bool) -> None:
    """Register evidence at CONTENT_REF with wrapped key KEY_BLOB."""
    from .commands.evidence_cmd import run_submit

    exit_code = run_submit(
        ctx.obj["config"], _caller(ctx), content_ref, key_blob,
        description=description, output_json=output_json,
    )
    sys.exit(exit_code)


@cli.command()
@click.argument("evidence_id", type=int)
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def show(ctx: click.Context, evidence_id: int, output_json: bool) -> None:
    """Show a record as the caller sees it (redacted without access)."""
    from .commands.evidence_cmd import run_show

    sys.exit(run_show(ctx.obj["config"], _caller(ctx), evidence_id, output_json=output_json))


@cli.command()
@click.argument("owner", required=False, callback=_identity)
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def owned(ctx: click.Context, owner: str | None, output_json: bool) -> None:
    """List evidence owned by OWNER (defaults to the caller)."""
    from .commands.evidence_cmd import run_owned

    sys.exit(run_owned(ctx.obj["config"], owner or _caller(ctx), output_json=output_json))


@cli.command()
@click.argument("evidence_id", type=int)
@click.pass_context
def deactivate(ctx: click.Context, evidence_id: int) -> None:
    """Mark a record as no longer current (owner only)."""
    from .commands.evidence_cmd import run_set_active

    sys.exit(run_set_active(ctx.obj["config"], _caller(ctx), evidence_id, active=False))


@cli.command()
@click.argument("evidence_id", type=int)
@click.pass_context
def reactivate(ctx: click.Context, evidence_id: int) -> None:
    """Mark a deactivated record as current again (owner only)."""
    from .commands.evidence_cmd import run_set_active

    sys.exit(run_set_active(ctx.obj["config"], _caller(ctx), evidence_id, active=True))


# -----------------------------------------------------------------------------
# Access lifecycle
# -----------------------------------------------------------------------------


@cli.command()
@click.argument("evidence_id", type=int)
@click.pass_context
def request(ctx: click.Context, evidence_id: int) -> None:
    """Ask the owner for access to EVIDENCE_ID."""
    from .commands.access_cmd import run_request

    sys.exit(run_request(ctx.obj["config"], _caller(ctx), evidence_id))


@cli.command()
@click.argument("evidence_id", type=int)
@click.argument("user", callback=_identity)
@click.pass_context
def grant(ctx: click.Context, evidence_id: int, user: str) -> None:
    """Grant USER's pending request (owner only)."""
    from .commands.access_cmd import run_grant

    sys.exit(run_grant(ctx.obj["config"], _caller(ctx), evidence_id, user))


@cli.command()
@click.argument("evidence_id", type=int)
@click.argument("user", callback=_identity)
@click.pass_context
def deny(ctx: click.Context, evidence_id: int, user: str) -> None:
    """Reject USER's pending request (owner only)."""
    from .commands.access_cmd import run_deny

    sys.exit(run_deny(ctx.obj["config"], _caller(ctx), evidence_id, user))


@cli.command()
@click.argument("evidence_id", type=int)
@click.argument("user", callback=_identity)
@click.pass_context
def revoke(ctx: click.Context, evidence_id: int, user: str) -> None:
    """Withdraw USER's granted access (owner only)."""
    from .commands.access_cmd import run_revoke

    sys.exit(run_revoke(ctx.obj["config"], _caller(ctx), evidence_id, user))


@cli.command()
@click.argument("evidence_id", type=int)
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def pending(ctx: click.Context, evidence_id: int, output_json: bool) -> None:
    """List users awaiting a decision (owner only)."""
    from .commands.access_cmd import run_pending

    sys.exit(run_pending(ctx.obj["config"], _caller(ctx), evidence_id, output_json=output_json))


@cli.command()
@click.argument("evidence_id", type=int)
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def granted(ctx: click.Context, evidence_id: int, output_json: bool) -> None:
    """List users currently granted (owner only)."""
    from .commands.access_cmd import run_granted

    sys.exit(run_granted(ctx.obj["config"], _caller(ctx), evidence_id, output_json=output_json))


@cli.command()
@click.argument("evidence_id", type=int)
@click.argument("user", callback=_identity)
@click.pass_context
def check(ctx: click.Context, evidence_id: int, user: str) -> None:
    """Exit 0 if USER may read EVIDENCE_ID, 1 otherwise."""
    from .commands.access_cmd import run_check

    sys.exit(run_check(ctx.obj["config"], evidence_id, user))


@cli.command()
@click.argument("evidence_id", type=int, required=False)
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def requests(ctx: click.Context, evidence_id: int | None, output_json: bool) -> None:
    """Request history for EVIDENCE_ID, or for all of the caller's evidence."""
    from .commands.access_cmd import run_requests

    sys.exit(run_requests(ctx.obj["config"], _caller(ctx), evidence_id, output_json=output_json))


@cli.command()
@click.argument("evidence_id", type=int)
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.option("--limit", type=int, default=None, help="Show at most this many events")
@click.pass_context
def audit(ctx: click.Context, evidence_id: int, output_json: bool, limit: int | None) -> None:
    """Show the event journal for EVIDENCE_ID (owner only)."""
    from .commands.access_cmd import run_audit

    sys.exit(run_audit(ctx.obj["config"], _caller(ctx), evidence_id, output_json=output_json, limit=limit))

