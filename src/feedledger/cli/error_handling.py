"""CLI error handling helpers."""

import click

from feedledger.domain.entities import EngineResult
from feedledger.domain.errors import DomainError


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    click.echo(f"Error: {error}", err=True)
    ctx.exit(1)


def unwrap_result(ctx: click.Context, result: EngineResult):
    """Return an engine result's payload, or render its failure and exit."""
    if not result.success:
        click.echo(f"Error: {result.message}", err=True)
        ctx.exit(1)
    return result.data
