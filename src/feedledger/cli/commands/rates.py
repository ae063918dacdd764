"""Exchange rate commands."""

from datetime import date
from decimal import Decimal

import click

from feedledger.cli.date_options import parse_date_option
from feedledger.cli.error_handling import handle_domain_error, unwrap_result
from feedledger.domain.currency import format_amount
from feedledger.domain.errors import DomainError
from feedledger.domain.sources import HttpRateSource
from feedledger.utils.amount_parser import parse_amount


@click.group()
def rates_group():
    """Manage exchange rates against the base currency."""
    pass


@rates_group.command("set")
@click.argument("currency")
@click.argument("rate")
@click.option("--date", "effective_date", help="Effective date (default: today)")
@click.pass_context
def set_rate(ctx, currency: str, rate: str, effective_date: str | None):
    """Record RATE base units per unit of CURRENCY.

    Examples:
        feedledger rates set USD 83.25
        feedledger rates set EUR 90.10 --date 2024-01-15
    """
    engine = ctx.obj["engine"]
    on = parse_date_option(ctx, effective_date, "date") or date.today()
    try:
        value = parse_amount(rate)
        engine.rate_cache.set_rates({currency: value}, on)
    except (DomainError, ValueError) as e:
        handle_domain_error(ctx, e)
    click.echo(f"1 {currency.upper()} = {value} {engine.base_currency} effective {on.isoformat()}")


@rates_group.command("show")
@click.option("--currency", help="Only show one currency")
@click.pass_context
def show_rates(ctx, currency: str | None):
    """Show stored rates, newest first."""
    engine = ctx.obj["engine"]
    rates = engine.db.list_exchange_rates(
        currency=currency.upper() if currency else None, base_currency=engine.base_currency
    )
    if not rates:
        click.echo("No exchange rates found.")
        return

    click.echo(f"\nRates in {engine.base_currency}:")
    click.echo("-" * 40)
    for rate in rates:
        click.echo(f"{rate.effective_date.isoformat()}  {rate.currency:3s}  {rate.rate}")


@rates_group.command("convert")
@click.argument("amount")
@click.argument("from_currency")
@click.argument("to_currency")
@click.option("--as-of", help="Use rates effective on this date")
@click.pass_context
def convert_amount(ctx, amount: str, from_currency: str, to_currency: str, as_of: str | None):
    """Convert AMOUNT from one currency to another."""
    engine = ctx.obj["engine"]
    try:
        value = parse_amount(amount)
    except ValueError as e:
        handle_domain_error(ctx, e)
    on = parse_date_option(ctx, as_of, "as-of date")
    converted = unwrap_result(ctx, engine.convert(value, from_currency, to_currency, on))
    click.echo(
        f"{format_amount(value, from_currency)} = "
        f"{format_amount(converted, to_currency)} ({converted.normalize():f} {to_currency.upper()})"
    )


@rates_group.command("refresh")
@click.pass_context
def refresh_rates(ctx):
    """Fetch the current rate table from the configured rate URL."""
    engine = ctx.obj["engine"]
    engine.rate_cache.source = HttpRateSource(engine.config.rate_url, clock=engine.clock)
    table = unwrap_result(ctx, engine.refresh_rates())
    stale = " (stale, upstream unavailable)" if table.stale else ""
    click.echo(f"Loaded {len(table.rates)} rates as of {table.as_of.isoformat()}{stale}")


def register_commands(cli):
    """Register rate commands with main CLI."""
    cli.add_command(rates_group, name="rates")
