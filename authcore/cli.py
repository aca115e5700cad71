"""Click CLI for database setup and auth housekeeping."""

from __future__ import annotations

import asyncio
import sys
from typing import Awaitable, Callable, TypeVar

import click

from authcore.config import get_settings
from authcore.database import (
    STORAGE_ERRORS,
    close_database,
    health_check,
    init_database,
    run_migrations,
)
from authcore.errors import AuthError
from authcore.services.logging_service import configure_logging
from authcore.services.rate_limit_service import close_redis, get_redis
from authcore.services.session_service import SessionStore
from authcore.services.user_service import IdentityRegistry

T = TypeVar("T")


def _run(operation: Callable[[], Awaitable[T]]) -> T:
    """Run one async operation with a pool opened, and every connection closed after."""

    async def _wrapped() -> T:
        await init_database()
        try:
            return await operation()
        finally:
            await close_database()
            await close_redis()

    return asyncio.run(_wrapped())


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL for this command.")
def cli(log_level: str | None) -> None:
    """Authentication core management commands."""
    configure_logging(log_level or get_settings().log_level)


@cli.command()
def migrate() -> None:
    """Apply SQL migrations (idempotent)."""
    applied = _run(run_migrations)
    click.echo(f"Applied {applied} migration file(s).")


@cli.command("create-admin")
@click.argument("username")
@click.password_option("--password", help="Admin password (prompted if omitted).")
def create_admin(username: str, password: str) -> None:
    """Create an admin user with username/password credentials."""
    registry = IdentityRegistry()

    try:
        user = _run(
            lambda: registry.register_with_credentials(username, password, is_admin=True)
        )
    except AuthError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)

    click.echo("Admin user created successfully:")
    click.echo(f"  ID: {user.id}")
    click.echo(f"  Username: {user.username}")
    click.echo(f"  Is Admin: {user.is_admin}")


@cli.command("sweep-sessions")
def sweep_sessions() -> None:
    """Delete every expired session once."""
    store = SessionStore()

    try:
        removed = _run(store.sweep_expired)
    except AuthError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)

    click.echo(f"Removed {removed} expired session(s).")


@cli.command()
def health() -> None:
    """Check PostgreSQL and Redis connectivity."""

    async def _check() -> tuple[bool, bool]:
        try:
            await init_database()
            database_ok = await health_check()
        except STORAGE_ERRORS:
            database_ok = False
        finally:
            await close_database()

        redis_ok = await get_redis() is not None
        await close_redis()
        return database_ok, redis_ok

    database_ok, redis_ok = asyncio.run(_check())

    click.echo(f"Database: {'ok' if database_ok else 'unavailable'}")
    # Rate limiting fails open without Redis, so it is reported but not fatal.
    click.echo(f"Redis: {'ok' if redis_ok else 'unavailable'}")

    if not database_ok:
        sys.exit(1)
