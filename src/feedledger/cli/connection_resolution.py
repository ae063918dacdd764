"""CLI helpers for connection resolution."""

from __future__ import annotations

import click

from feedledger.domain.connection import ConnectionService
from feedledger.domain.errors import DomainError
from feedledger.utils.connection_resolver import resolve_connection


def resolve_connection_or_exit(
    ctx: click.Context, connection_service: ConnectionService, connection: str | int
) -> int:
    """Resolve connection ID or account name, or exit with a CLI error."""
    try:
        return resolve_connection(connection_service, connection)
    except DomainError as exc:
        click.echo(f"Error: {exc}", err=True)
        ctx.exit(1)
