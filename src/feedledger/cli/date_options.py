"""Date options shared by CLI commands."""

from dataclasses import dataclass
from datetime import date

import click

from feedledger.utils.date_parser import REPORT_PERIODS, get_date_range, parse_date


@dataclass(frozen=True)
class ReportPeriod:
    """Closed date range a report covers, with the name it was chosen by."""

    start: date
    end: date
    name: str | None = None

    def describe(self) -> str:
        span = f"{self.start.isoformat()} to {self.end.isoformat()}"
        if self.name:
            return f"{self.name.replace('-', ' ')} ({span})"
        return span


def _fail(ctx: click.Context, message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    ctx.exit(1)


def parse_date_option(ctx, value: str | None, label: str) -> date | None:
    """Parse an optional single date option, or exit with a CLI error."""
    if value is None:
        return None
    try:
        return parse_date(value)
    except ValueError as e:
        _fail(ctx, f"Invalid {label}: {e}")


def report_period_options(command):
    """Add --period, --start-date and --end-date to a report command."""
    command = click.option("--end-date", help="Last day of the range (default: today)")(command)
    command = click.option("--start-date", help="First day of an explicit range")(command)
    command = click.option(
        "--period",
        type=click.Choice(REPORT_PERIODS, case_sensitive=False),
        help="Named reporting period (default: this-month)",
    )(command)
    return command


def resolve_report_period(
    ctx,
    *,
    period: str | None,
    start_date: str | None,
    end_date: str | None,
    today: date,
) -> ReportPeriod:
    """Resolve report options into the range passed to the engine.

    A named period and explicit dates are mutually exclusive. An explicit
    range needs --start-date and runs to today when --end-date is omitted.
    Without any option the current month to date is reported.
    """
    if period and (start_date or end_date):
        _fail(ctx, "--period cannot be combined with --start-date or --end-date")
    if end_date and not start_date:
        _fail(ctx, "--end-date requires --start-date")

    if not start_date:
        name = (period or "this-month").lower()
        start, end = get_date_range(name, today)
        return ReportPeriod(start, end, name)

    start = parse_date_option(ctx, start_date, "start date")
    end = parse_date_option(ctx, end_date, "end date") or today
    if start > end:
        _fail(ctx, f"Start date {start.isoformat()} is after end date {end.isoformat()}")
    return ReportPeriod(start, end)
