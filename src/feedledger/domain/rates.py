"""Exchange rate cache with last-known-good fallback.

Rates are stored as base units per one unit of a currency. The database
keeps the dated history; the cache keeps the most recent table in memory
and replaces it with a single assignment, so readers never see a table
that is half refreshed.
"""

import logging
import threading
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Callable, Iterable, Optional

from feedledger.database.base import Database
from feedledger.domain.currency import normalize_currency
from feedledger.domain.entities import RateTable
from feedledger.domain.errors import (
    RateSourceError,
    RateUnavailable,
    ValidationError,
    rate_unavailable,
)
from feedledger.domain.sources import RateSource

logger = logging.getLogger(__name__)

RateListener = Callable[[RateTable], None]


class ExchangeRateCache:
    """Dated currency->base rates backed by the database."""

    def __init__(
        self,
        db: Database,
        source: Optional[RateSource] = None,
        base_currency: str = "INR",
    ):
        """Initialize rate cache.

        Args:
            db: Database instance
            source: Upstream rate source; without one refresh only reloads
                the latest stored table
            base_currency: Currency every rate is quoted against
        """
        self.db = db
        self.source = source
        self.base_currency = normalize_currency(base_currency)
        self._table: Optional[RateTable] = None
        self._refresh_lock = threading.Lock()
        self._listeners: list[RateListener] = []
        self._listeners_lock = threading.Lock()

    @property
    def table(self) -> Optional[RateTable]:
        """The in-memory table, or None before the first load."""
        return self._table

    def subscribe(self, listener: RateListener) -> Callable[[], None]:
        """Register a listener called with each freshly refreshed table.

        Returns:
            A callable that removes the listener again
        """
        with self._listeners_lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._listeners_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, table: RateTable) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(table)
            except Exception:
                logger.exception("Rate refresh listener %r failed", listener)

    def refresh(self) -> RateTable:
        """Fetch the current table and store it under its effective date.

        When the source fails, or serves a table older than the latest one
        stored, the last cached table (or the latest one stored) is kept and
        returned marked stale. History is never rewritten.

        Raises:
            RateSourceError: If the source fails and no table exists at all
        """
        with self._refresh_lock:
            try:
                if self.source is None:
                    raise RateSourceError("No rate source configured")
                fetched = self.source.fetch_rates(self.base_currency)
                stored = self.db.get_latest_rate_table(self.base_currency)
                if stored is not None and fetched.as_of < stored.as_of:
                    raise RateSourceError(
                        f"Source rates as of {fetched.as_of} are older than "
                        f"stored rates as of {stored.as_of}"
                    )
            except RateSourceError as e:
                fallback = self._table or self.db.get_latest_rate_table(self.base_currency)
                if fallback is None:
                    raise
                logger.warning(
                    "Rate refresh failed (%s); using rates as of %s", e, fallback.as_of
                )
                self._table = replace(fallback, stale=True)
                return self._table

            rates = {
                currency: rate
                for currency, rate in fetched.rates.items()
                if currency != self.base_currency and rate > 0
            }
            with self.db.unit_of_work():
                self.db.upsert_exchange_rates(self.base_currency, fetched.as_of, rates)
            table = RateTable(base_currency=self.base_currency, as_of=fetched.as_of, rates=rates)
            self._table = table

        logger.info("Refreshed %d %s rates as of %s", len(rates), self.base_currency, table.as_of)
        self._publish(table)
        return table

    def set_rates(self, rates: dict[str, Decimal], effective_date: date) -> RateTable:
        """Record manually supplied rates for one effective date."""
        cleaned = {}
        for currency, rate in rates.items():
            currency = normalize_currency(currency)
            rate = Decimal(rate)
            if rate <= 0:
                raise ValidationError(f"Rate for {currency} must be positive")
            if currency != self.base_currency:
                cleaned[currency] = rate

        with self._refresh_lock:
            with self.db.unit_of_work():
                self.db.upsert_exchange_rates(self.base_currency, effective_date, cleaned)
            self._table = self.db.get_latest_rate_table(self.base_currency)
        self._publish(self._table)
        return self._table

    def lookup(self, currency: str, as_of: Optional[date] = None) -> Optional[Decimal]:
        """Rate of ``currency`` in base units, without touching the source.

        Without ``as_of`` the in-memory table is consulted first; a dated
        lookup reads the latest stored row effective on or before that date.
        """
        if currency == self.base_currency:
            return Decimal("1")
        if as_of is None:
            table = self._table
            if table is not None and currency in table.rates:
                return table.rates[currency]
        row = self.db.get_exchange_rate(currency, self.base_currency, as_of)
        return row.rate if row is not None else None

    def get_rates(
        self, currencies: Iterable[str], as_of: Optional[date] = None
    ) -> dict[str, Decimal]:
        """Look up several currencies, refreshing at most once on a miss.

        Raises:
            RateUnavailable: If a currency is still missing after the refresh
        """
        currencies = [normalize_currency(c) for c in currencies]
        found = {c: self.lookup(c, as_of) for c in currencies}
        missing = [c for c, rate in found.items() if rate is None]
        if not missing:
            return found

        logger.info("No cached rate for %s; refreshing", ", ".join(missing))
        try:
            self.refresh()
        except RateSourceError as e:
            logger.warning("On-demand rate refresh failed: %s", e)

        for currency in missing:
            rate = self.lookup(currency, as_of)
            if rate is None:
                raise RateUnavailable(rate_unavailable(currency, self.base_currency))
            found[currency] = rate
        return found

    def get_rate(self, currency: str, as_of: Optional[date] = None) -> Decimal:
        """Rate of one currency in base units.

        Raises:
            RateUnavailable: If no cached or fetchable rate exists
        """
        currency = normalize_currency(currency)
        return self.get_rates([currency], as_of)[currency]
