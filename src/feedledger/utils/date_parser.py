"""Date parsing utilities."""

from datetime import date, datetime, timedelta, UTC
from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta


def utcnow() -> datetime:
    """Default clock for services that need the current instant."""
    return datetime.now(UTC)


def parse_date(date_str: str) -> date:
    """Parse a date string into a date object.

    Supports absolute dates ("2024-01-15", "January 15, 2024") and the
    relative forms "today", "yesterday", "this month", "last month",
    "this year" and "last year".

    Args:
        date_str: Date string in various formats

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    date_str = date_str.strip().lower()
    today = date.today()

    relative_dates = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "this month": today.replace(day=1),
        "last month": (today - relativedelta(months=1)).replace(day=1),
        "this year": today.replace(month=1, day=1),
        "last year": today.replace(month=1, day=1) - relativedelta(years=1),
    }
    if date_str in relative_dates:
        return relative_dates[date_str]

    try:
        return date_parser.parse(date_str).date()
    except (ValueError, TypeError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")


def parse_vendor_datetime(value) -> datetime:
    """Parse a vendor timestamp into a UTC-aware datetime.

    Accepts ISO strings, loose date strings, epoch seconds and date or
    datetime objects. Naive values are taken as UTC.

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        dt = datetime.fromtimestamp(value, UTC)
    elif isinstance(value, str) and value.strip():
        try:
            dt = date_parser.isoparse(value.strip())
        except ValueError:
            try:
                dt = date_parser.parse(value.strip())
            except (ValueError, OverflowError) as e:
                raise ValueError(f"Could not parse timestamp '{value}': {e}")
    else:
        raise ValueError(f"Could not parse timestamp '{value}'")

    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


REPORT_PERIODS = (
    "this-month",
    "last-month",
    "this-quarter",
    "last-quarter",
    "this-year",
    "last-year",
)


def get_date_range(period: str, today: date | None = None) -> tuple[date, date]:
    """Start and end dates of a named reporting period.

    ``this-*`` periods run from the start of the current month, calendar
    quarter or year up to ``today``; ``last-*`` periods are the previous
    complete one.

    Args:
        period: One of REPORT_PERIODS
        today: Reference date (defaults to date.today())

    Raises:
        ValueError: If period string is not recognized
    """
    period = period.strip().lower()
    today = today or date.today()
    month_start = today.replace(day=1)
    spans = {
        "month": (month_start, relativedelta(months=1)),
        "quarter": (month_start.replace(month=(today.month - 1) // 3 * 3 + 1), relativedelta(months=3)),
        "year": (month_start.replace(month=1), relativedelta(years=1)),
    }

    which, _, unit = period.partition("-")
    if which not in ("this", "last") or unit not in spans:
        raise ValueError(
            f"Unknown period: '{period}'. Supported periods: {', '.join(REPORT_PERIODS)}"
        )

    start, length = spans[unit]
    if which == "this":
        return (start, today)
    return (start - length, start - timedelta(days=1))
