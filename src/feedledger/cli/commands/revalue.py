"""Foreign-currency revaluation command."""

import click

from feedledger.cli.date_options import parse_date_option
from feedledger.cli.error_handling import unwrap_result
from feedledger.domain.currency import format_amount


@click.command("revalue")
@click.option("--as-of", help="Valuation date (default: today)")
@click.pass_context
def revalue_positions(ctx, as_of: str | None):
    """Revalue open foreign-currency positions and post the adjustment."""
    engine = ctx.obj["engine"]
    on = parse_date_option(ctx, as_of, "as-of date")
    result = unwrap_result(ctx, engine.revalue(on))
    base = engine.base_currency

    if not result.positions and not result.skipped:
        click.echo("No open foreign-currency positions.")
        return

    click.echo(f"\nRevaluation as of {result.as_of.isoformat()}:")
    click.echo("-" * 80)
    for p in result.positions:
        click.echo(
            f"Account {p.account_id:5d} | {p.currency} {p.original_amount:>12} @ {p.current_rate} | "
            f"gain/loss {format_amount(p.gain_loss, base):>12} | adjustment {format_amount(p.adjustment, base)}"
        )
    for s in result.skipped:
        click.echo(f"Skipped account {s.account_id} {s.currency}: {s.message}", err=True)

    click.echo(f"\nUnrealized gain/loss: {format_amount(result.total_gain_loss, base)}")
    if result.posted:
        click.echo(
            f"Posted adjustment {format_amount(result.total_adjustment, base)} "
            f"(voucher {result.voucher_number})"
        )
    else:
        click.echo("No adjustment posted.")


def register_commands(cli):
    """Register revalue command with main CLI."""
    cli.add_command(revalue_positions)
