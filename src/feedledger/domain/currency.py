"""Supported currencies and display formatting."""

from decimal import Decimal, ROUND_HALF_UP


SUPPORTED_CURRENCIES: dict[str, tuple[str, str]] = {
    "INR": ("₹", "Indian Rupee"),
    "USD": ("$", "US Dollar"),
    "EUR": ("€", "Euro"),
    "GBP": ("£", "British Pound"),
    "AED": ("د.إ", "UAE Dirham"),
    "SGD": ("S$", "Singapore Dollar"),
    "AUD": ("A$", "Australian Dollar"),
    "CAD": ("C$", "Canadian Dollar"),
    "JPY": ("¥", "Japanese Yen"),
    "CNY": ("¥", "Chinese Yuan"),
}

CENT = Decimal("0.01")


def normalize_currency(value: str) -> str:
    """Normalize a currency code to upper-case ISO 4217 form.

    Raises:
        ValueError: If the value is not a three-letter code
    """
    normalized = (value or "").strip().upper()
    if len(normalized) != 3 or not normalized.isalpha():
        raise ValueError(f"Currency must be a 3-letter ISO 4217 code, got '{value}'")
    return normalized


def quantize_money(amount: Decimal) -> Decimal:
    """Round to two decimal places, half up."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_money(amount) -> Decimal:
    """Return the amount with exactly two decimal places.

    Trailing zeros are dropped, so ``Decimal("120.000")`` is accepted.

    Raises:
        ValueError: If the amount has non-zero digits beyond the cent
    """
    value = Decimal(amount)
    money = quantize_money(value)
    if money != value:
        raise ValueError(f"Amount {value} has more than two decimal places")
    return money


def get_currency_symbol(currency_code: str) -> str:
    entry = SUPPORTED_CURRENCIES.get(currency_code.upper())
    return entry[0] if entry else currency_code


def format_amount(amount: Decimal, currency_code: str) -> str:
    """Render an amount with its currency symbol, e.g. ``$1,234.50``."""
    symbol = get_currency_symbol(currency_code)
    value = quantize_money(Decimal(amount))
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"
