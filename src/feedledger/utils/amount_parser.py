"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation
import re


def parse_amount(value) -> Decimal:
    """Parse a vendor amount into a Decimal.

    Vendor feeds send amounts as JSON numbers or as strings. Handles:
    - 123.45 / "123.45"
    - "-123.45"
    - "₹1,234.56", "$1,234.56"
    - "(123.45)" (negative in parentheses)

    Floats go through ``str`` so 0.1 stays 0.1.

    Args:
        value: Amount as str, int, float or Decimal

    Returns:
        Decimal amount

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Could not parse amount '{value}'")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))

    amount_str = str(value).strip()
    if not amount_str:
        raise ValueError("Empty amount string")

    # Handle parentheses notation (negative)
    is_negative = False
    if amount_str.startswith("(") and amount_str.endswith(")"):
        is_negative = True
        amount_str = amount_str[1:-1]

    # Remove currency symbols and thousands separators
    amount_str = re.sub(r"[$€£¥₹]", "", amount_str)
    amount_str = amount_str.replace(",", "").strip()

    try:
        amount = Decimal(amount_str)
    except InvalidOperation as e:
        raise ValueError(f"Could not parse amount '{amount_str}': {e}")
    if not amount.is_finite():
        raise ValueError(f"Could not parse amount '{amount_str}'")
    return -amount if is_negative else amount
