"""
API key administration CLI.

Create, list, revoke and delete API keys, or start the API server.
"""

from typing import Optional, Tuple
import os
import sys

import click

from auth.errors import PersistenceError
from auth.key_manager import APIKeyManager
from auth.key_store import APIKeyStore
from storage.relational.database import DatabaseConfig, DatabaseManager


def _format_time(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else "never"


def _fail(message: str):
    click.secho(f"✗ {message}", fg="red", err=True)
    sys.exit(1)


@click.group()
@click.version_option(version="1.0.0")
@click.option("--database-url", envvar="DATABASE_URL", default=None, help="SQLAlchemy database URL")
@click.pass_context
def cli(ctx: click.Context, database_url: Optional[str]):
    """
    BroHelp API key administration.

    Keys are shown in plaintext only once, when they are created.
    """
    ctx.ensure_object(dict)
    ctx.obj["database_url"] = database_url


def _manager(ctx: click.Context) -> APIKeyManager:
    manager = ctx.obj.get("manager")
    if manager is None:
        db = DatabaseManager(DatabaseConfig(ctx.obj.get("database_url")))
        manager = APIKeyManager(APIKeyStore(db))
        try:
            manager.store.ensure_schema()
        except PersistenceError as e:
            _fail(f"Database unavailable: {e}")
        ctx.obj["manager"] = manager
    return manager


@cli.command()
@click.argument("name")
@click.option("--permission", "-p", "permissions", multiple=True, help="Permission to grant (repeatable, default: read, write)")
@click.pass_context
def create(ctx: click.Context, name: str, permissions: Tuple[str, ...]):
    """Create a new API key named NAME."""
    manager = _manager(ctx)
    try:
        issued = manager.issue(name, permissions or None)
    except ValueError as e:
        _fail(str(e))
    except PersistenceError as e:
        _fail(f"Could not create API key: {e}")

    click.echo(f"✓ Created API key {issued.id} ({issued.name})")
    click.echo(f"  Permissions: {', '.join(sorted(issued.permissions))}")
    click.echo("")
    click.echo(f"  {issued.api_key}")
    click.echo("")
    click.secho("Store this key now. It cannot be shown again.", fg="yellow")


@cli.command(name="list")
@click.pass_context
def list_keys(ctx: click.Context):
    """List API keys (never shows the keys themselves)."""
    manager = _manager(ctx)
    try:
        keys = manager.list_keys()
    except PersistenceError as e:
        _fail(f"Could not list API keys: {e}")

    if not keys:
        click.echo("No API keys found.")
        return

    click.echo(f"{'ID':>4}  {'NAME':<24} {'CREATED':<19}  {'LAST USED':<19}  {'STATUS':<8} PERMISSIONS")
    for key in keys:
        status = "active" if key.is_active else "revoked"
        click.echo(
            f"{key.id:>4}  {key.name[:24]:<24} {_format_time(key.created_at):<19}  "
            f"{_format_time(key.last_used_at):<19}  {status:<8} {','.join(sorted(key.permissions))}"
        )


@cli.command()
@click.argument("key_id", type=int)
@click.pass_context
def revoke(ctx: click.Context, key_id: int):
    """Revoke API key KEY_ID. The record is kept for auditing."""
    manager = _manager(ctx)
    try:
        revoked = manager.revoke(key_id)
    except PersistenceError as e:
        _fail(f"Could not revoke API key: {e}")

    if not revoked:
        _fail(f"API key {key_id} not found")
    click.echo(f"✓ Revoked API key {key_id}")


@cli.command()
@click.argument("key_id", type=int)
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete(ctx: click.Context, key_id: int, yes: bool):
    """Permanently delete API key KEY_ID."""
    if not yes:
        click.confirm(f"Permanently delete API key {key_id}?", abort=True)

    manager = _manager(ctx)
    try:
        deleted = manager.delete(key_id)
    except PersistenceError as e:
        _fail(f"Could not delete API key: {e}")

    if not deleted:
        _fail(f"API key {key_id} not found")
    click.echo(f"✓ Deleted API key {key_id}")


@cli.command()
@click.option("--host", default=None, help="Bind address (default: API_HOST or 0.0.0.0)")
@click.option("--port", type=int, default=None, help="Port (default: API_PORT or 5000)")
@click.pass_context
def serve(ctx: click.Context, host: Optional[str], port: Optional[int]):
    """Run the API server."""
    from apps.api.main import run

    # The server builds its own config from the environment
    if ctx.obj.get("database_url"):
        os.environ["DATABASE_URL"] = ctx.obj["database_url"]

    run(host=host, port=port)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
