"""CLI entry point for agent-context.

Invoked as::

    agent-context [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m agent_context.cli.main

Commands
--------
identity create     Create (or resume from a seed) an agent identity
delegate issue      Issue a delegation token
delegate verify     Verify a delegation token
delegate inspect    Show the fields of a delegation token
store put           Upload a file to the content store
store get           Fetch a file from the content store
"""
from __future__ import annotations

import asyncio
import datetime
import logging
import secrets
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from agent_context.errors import AgentContextError

console = Console(emoji=False)


# ------------------------------------------------------------------
# Root group
# ------------------------------------------------------------------


@click.group()
@click.version_option(package_name="agent-context")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging verbosity.",
)
def cli(log_level: str) -> None:
    """Content-addressed agent memory with signed capability delegation"""
    logging.basicConfig(level=getattr(logging, log_level.upper()))


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from agent_context import __version__

    console.print(f"[bold]agent-context[/bold] v{__version__}")


# ------------------------------------------------------------------
# identity command group
# ------------------------------------------------------------------


@cli.group(name="identity")
def identity_group() -> None:
    """Manage agent identities."""


@identity_group.command(name="create")
@click.option(
    "--seed",
    default=None,
    help="64-character hex seed to resume an existing identity.",
)
def identity_create_command(seed: str | None) -> None:
    """Create a new identity, or recompute the one for --seed."""
    from agent_context.identity import KeyManager

    generated = seed is None
    seed_hex = secrets.token_bytes(32).hex() if seed is None else seed

    try:
        identity = KeyManager().from_seed_hex(seed_hex)
    except AgentContextError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    console.print(f"[green]Identity[/green] [bold]{identity.did}[/bold]")
    console.print(f"  Public key: {identity.public_key.hex()}")
    if generated:
        console.print(f"  Seed:       {seed_hex}")
        console.print("  [yellow]Keep the seed secret; it recreates this identity.[/yellow]")


# ------------------------------------------------------------------
# delegate command group
# ------------------------------------------------------------------


@cli.group(name="delegate")
def delegate_group() -> None:
    """Issue and check delegation tokens."""


@delegate_group.command(name="issue")
@click.option("--seed", required=True, help="Issuer's 64-character hex seed.")
@click.option("--audience", "-a", required=True, help="did:key of the receiving agent.")
@click.option("--ability", default="agent/read", show_default=True, help="Ability to grant.")
@click.option(
    "--ttl-hours",
    type=float,
    default=24.0,
    show_default=True,
    help="Token lifetime in hours.",
)
@click.option(
    "--output",
    type=click.Path(),
    default=None,
    help="Write the token to this file path.",
)
def delegate_issue_command(
    seed: str,
    audience: str,
    ability: str,
    ttl_hours: float,
    output: str | None,
) -> None:
    """Issue a delegation from the --seed identity to --audience."""
    from agent_context.delegation import DelegationService
    from agent_context.identity import KeyManager

    service = DelegationService()
    try:
        issuer = KeyManager().from_seed_hex(seed)
        delegation = service.issue(issuer, audience, ability, ttl_hours)
    except AgentContextError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    token = service.to_transport_string(delegation)
    if output:
        Path(output).write_text(token, encoding="utf-8")
        console.print(f"[green]Token written to[/green] {output}")
    else:
        console.print(token, soft_wrap=True)

    console.print(f"\n  Token CID: [bold]{delegation.content_address}[/bold]")
    console.print(f"  Issuer:    {delegation.issuer_did}")
    console.print(f"  Audience:  {delegation.audience_did}")
    console.print(f"  Ability:   {delegation.capability.ability}")
    console.print(f"  Expires:   {_format_timestamp(delegation.expiration)}")


@delegate_group.command(name="verify")
@click.argument("token")
@click.option("--issuer", "-i", required=True, help="did:key the token must be issued by.")
@click.option("--ability", default="agent/read", show_default=True, help="Ability the token must grant.")
def delegate_verify_command(token: str, issuer: str, ability: str) -> None:
    """Verify TOKEN locally against --issuer and --ability."""
    from agent_context.delegation import DelegationService

    service = DelegationService()
    try:
        delegation = service.from_transport_string(_read_token(token))
    except AgentContextError as exc:
        console.print(f"  [red]FAIL[/red]  {exc}")
        sys.exit(1)

    result = service.verify(delegation, issuer, ability)
    if result.valid:
        console.print(f"  [green]PASS[/green]  {delegation.audience_did} may {ability}")
    else:
        reason = result.reason.value if result.reason is not None else "denied"
        console.print(f"  [red]FAIL[/red]  {reason}")
        sys.exit(1)


@delegate_group.command(name="inspect")
@click.argument("token")
def delegate_inspect_command(token: str) -> None:
    """Show the fields of TOKEN without verifying it."""
    from agent_context.delegation import DelegationService

    service = DelegationService()
    try:
        delegation = service.from_transport_string(_read_token(token))
    except AgentContextError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    table = Table(title="Delegation", show_header=True)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Issuer", delegation.issuer_did)
    table.add_row("Audience", delegation.audience_did)
    table.add_row("Ability", delegation.capability.ability)
    table.add_row("Resource", delegation.capability.resource)
    table.add_row("Expires", _format_timestamp(delegation.expiration))
    table.add_row("CID", delegation.content_address)
    console.print(table)


# ------------------------------------------------------------------
# store command group
# ------------------------------------------------------------------


@cli.group(name="store")
def store_group() -> None:
    """Upload and fetch content-addressed blobs."""


@store_group.command(name="put")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--filename", default=None, help="Name to store under (defaults to the file's name).")
@click.option(
    "--mime-type",
    default="application/octet-stream",
    show_default=True,
    help="MIME type sent with the upload.",
)
def store_put_command(file: str, filename: str | None, mime_type: str) -> None:
    """Upload FILE and print its CID."""
    from agent_context.config import Settings
    from agent_context.content import is_simulated_cid

    path = Path(file)
    store = Settings.from_env().build_store()
    try:
        cid = asyncio.run(store.upload(path.read_bytes(), filename or path.name, mime_type))
    except AgentContextError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    console.print(f"[green]Stored[/green] [bold]{cid}[/bold]")
    if is_simulated_cid(cid):
        console.print("  [yellow]Simulated: configure AGENT_CONTEXT_UPLOAD_URL and "
                      "AGENT_CONTEXT_API_TOKEN for network storage.[/yellow]")
    else:
        console.print(f"  Gateway: {store.gateway_url(cid)}")


@store_group.command(name="get")
@click.argument("cid")
@click.option("--filename", required=True, help="Name the content was stored under.")
@click.option(
    "--output",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write the content to this path instead of stdout.",
)
def store_get_command(cid: str, filename: str, output: str | None) -> None:
    """Fetch CID and print or save its content."""
    from agent_context.config import Settings

    store = Settings.from_env().build_store()
    try:
        data = asyncio.run(store.fetch(cid, filename))
    except AgentContextError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    if data is None:
        console.print(f"[red]Not found:[/red] {cid}/{filename}")
        sys.exit(1)
    if output:
        Path(output).write_bytes(data)
        console.print(f"[green]Wrote[/green] {len(data)} bytes to {output}")
    else:
        click.echo(data.decode("utf-8", errors="replace"))


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _read_token(token: str) -> str:
    """Return *token*, or the contents of the file it names when prefixed with ``@``."""
    if token.startswith("@"):
        try:
            return Path(token[1:]).read_text(encoding="utf-8")
        except OSError as exc:
            console.print(f"[red]Error:[/red] cannot read token file: {exc}")
            sys.exit(1)
    return token


def _format_timestamp(seconds: int) -> str:
    return datetime.datetime.fromtimestamp(seconds, datetime.timezone.utc).isoformat()


if __name__ == "__main__":
    cli()
