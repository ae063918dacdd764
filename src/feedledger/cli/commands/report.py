"""Reporting commands."""

import click

from feedledger.cli.date_options import (
    parse_date_option,
    report_period_options,
    resolve_report_period,
)
from feedledger.cli.error_handling import unwrap_result
from feedledger.domain.currency import format_amount


@click.group()
def report_group():
    """Forex exposure and profit and loss reports."""
    pass


@report_group.command("exposure")
@click.pass_context
def exposure_report(ctx):
    """Open foreign-currency exposure at current rates."""
    engine = ctx.obj["engine"]
    report = unwrap_result(ctx, engine.get_forex_exposure_report())
    base = report.base_currency

    if not report.exposures:
        click.echo("No foreign-currency exposure.")
        return

    click.echo(f"\nForex exposure ({base}):")
    click.echo("-" * 90)
    for line in report.exposures:
        unpriced = "  (no current rate)" if not line.priced else ""
        click.echo(
            f"{line.currency}  {format_amount(line.total_amount, line.currency):>14}  "
            f"posted {format_amount(line.original_base_value, base):>16}  "
            f"now {format_amount(line.current_base_value, base):>16}  "
            f"unrealized {format_amount(line.unrealized_gain_loss, base):>14}  "
            f"[{line.transaction_count} txn]{unpriced}"
        )
    click.echo("-" * 90)
    click.echo(f"Total exposure: {format_amount(report.total_exposure, base)}")


@report_group.command("pl")
@report_period_options
@click.pass_context
def pl_report(ctx, period: str | None, start_date: str | None, end_date: str | None):
    """Revenue and expenses per currency, with base-currency totals.

    Examples:
        feedledger report pl
        feedledger report pl --period last-quarter
        feedledger report pl --start-date 2024-01-01 --end-date 2024-01-31
    """
    engine = ctx.obj["engine"]
    report_period = resolve_report_period(
        ctx,
        period=period,
        start_date=start_date,
        end_date=end_date,
        today=engine.clock().date(),
    )

    report = unwrap_result(
        ctx, engine.get_multi_currency_pl(report_period.start, report_period.end)
    )
    base = report.base_currency
    click.echo(f"\nProfit and loss, {report_period.describe()}:")

    if not report.currencies:
        click.echo("No transactions in this period.")
        return

    click.echo("-" * 80)
    for line in report.currencies:
        click.echo(
            f"{line.currency}  revenue {format_amount(line.revenue, line.currency):>14}  "
            f"expenses {format_amount(line.expenses, line.currency):>14}  "
            f"profit {format_amount(line.profit, line.currency):>14}  "
            f"({format_amount(line.profit_base, base)})"
        )
    click.echo("-" * 80)
    click.echo(f"Total revenue:  {format_amount(report.total_revenue_base, base)}")
    click.echo(f"Total expenses: {format_amount(report.total_expenses_base, base)}")
    click.echo(f"Net profit:     {format_amount(report.total_profit_base, base)}")


@report_group.command("forex")
@click.argument("account_id", type=int)
@click.option("--as-of", help="Valuation date (default: today)")
@click.pass_context
def forex_report(ctx, account_id: int, as_of: str | None):
    """Per-transaction unrealized gain or loss for one account."""
    engine = ctx.obj["engine"]
    on = parse_date_option(ctx, as_of, "as-of date")
    report = unwrap_result(ctx, engine.calculate_forex_gain_loss(account_id, on))
    base = engine.base_currency

    if not report.details:
        click.echo(f"No foreign-currency transactions for account {account_id}.")
        return

    click.echo(f"\nForex gain/loss for account {account_id} as of {report.as_of.isoformat()}:")
    click.echo("-" * 80)
    for d in report.details:
        click.echo(
            f"{d.date.isoformat()}  {format_amount(d.amount, d.currency):>14}  "
            f"{d.original_rate} -> {d.current_rate}  {format_amount(d.gain_loss, base):>14}"
        )
    click.echo(f"Total: {format_amount(report.total_gain_loss, base)}")


def register_commands(cli):
    """Register report commands with main CLI."""
    cli.add_command(report_group, name="report")
