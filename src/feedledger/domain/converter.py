"""Currency conversion over the rate cache."""

from datetime import date
from decimal import Decimal
from typing import Optional

from feedledger.domain.currency import normalize_currency
from feedledger.domain.errors import RateUnavailable, ValidationError, rate_unavailable
from feedledger.domain.rates import ExchangeRateCache


class CurrencyConverter:
    """Cross rates and converted amounts. Never writes anything itself."""

    def __init__(self, cache: ExchangeRateCache):
        self.cache = cache

    @property
    def base_currency(self) -> str:
        return self.cache.base_currency

    def get_rate(self, from_currency: str, to_currency: str, as_of: Optional[date] = None) -> Decimal:
        """Units of ``to_currency`` per unit of ``from_currency``.

        Cross pairs divide the two rates against the base currency.

        Raises:
            ValidationError: If a currency code is malformed
            RateUnavailable: If either side cannot be priced
        """
        try:
            from_currency = normalize_currency(from_currency)
            to_currency = normalize_currency(to_currency)
        except ValueError as e:
            raise ValidationError(str(e))

        if from_currency == to_currency:
            return Decimal("1")

        try:
            rates = self.cache.get_rates([from_currency, to_currency], as_of)
        except RateUnavailable as e:
            raise RateUnavailable(f"{rate_unavailable(from_currency, to_currency)}: {e}") from e
        return rates[from_currency] / rates[to_currency]

    def convert(
        self,
        amount: Decimal,
        from_currency: str,
        to_currency: str,
        as_of: Optional[date] = None,
    ) -> Decimal:
        """Convert an amount; the result is not rounded."""
        return Decimal(amount) * self.get_rate(from_currency, to_currency, as_of)
