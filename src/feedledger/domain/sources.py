"""External collaborator interfaces and their bundled implementations.

The engine consumes three collaborators: a feed fetcher per bank, a rate
source for the base currency, and a secret store holding credentials.
"""

import json
import logging
import secrets
import threading
from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Callable, Optional

import requests

from feedledger.config import DEFAULT_RATE_URL
from feedledger.domain.entities import RateTable
from feedledger.domain.errors import (
    FetchError,
    FetchErrorKind,
    NotFoundError,
    RateSourceError,
)
from feedledger.utils.date_parser import parse_vendor_datetime, utcnow

logger = logging.getLogger(__name__)

RATE_PRECISION = Decimal("0.00000001")


class FeedFetcher(ABC):
    """Pulls raw vendor records for a connection since a checkpoint."""

    @abstractmethod
    def fetch(
        self, bank_id: str, credential_handle: str, since: datetime
    ) -> list[dict[str, Any]]:
        """Return raw vendor records dated at or after ``since``.

        Raises:
            FetchError: transient, auth or malformed failure
        """
        pass


class RateSource(ABC):
    """Delivers the full currency->base rate table for a base currency."""

    @abstractmethod
    def fetch_rates(self, base_currency: str) -> RateTable:
        """Fetch the current table.

        Raises:
            RateSourceError: If the upstream cannot deliver a table
        """
        pass


class SecretStore(ABC):
    """Owns credentials; the engine only ever holds opaque handles."""

    @abstractmethod
    def encrypt(self, plaintext: str) -> str:
        """Store credentials and return a handle."""
        pass

    @abstractmethod
    def decrypt(self, handle: str) -> str:
        """Resolve a handle back to credentials."""
        pass


class InMemorySecretStore(SecretStore):
    """Process-local secret store keyed by random handles.

    Handles do not survive a restart; deployments supply a real store.
    """

    def __init__(self):
        self._secrets: dict[str, str] = {}
        self._lock = threading.Lock()

    def encrypt(self, plaintext: str) -> str:
        handle = f"mem-{secrets.token_hex(8)}"
        with self._lock:
            self._secrets[handle] = plaintext
        return handle

    def decrypt(self, handle: str) -> str:
        with self._lock:
            if handle not in self._secrets:
                raise NotFoundError(f"Unknown credential handle '{handle}'")
            return self._secrets[handle]


class StaticRateSource(RateSource):
    """Rate source serving a fixed table, replaceable between fetches."""

    def __init__(self, rates: dict[str, Decimal], as_of: date):
        self.rates = dict(rates)
        self.as_of = as_of

    def fetch_rates(self, base_currency: str) -> RateTable:
        return RateTable(base_currency=base_currency, as_of=self.as_of, rates=dict(self.rates))


class HttpRateSource(RateSource):
    """Rate source backed by an exchangerate-api style JSON endpoint.

    The endpoint quotes how many units of each currency one base unit buys
    (``{"date": "2024-01-15", "rates": {"USD": 0.012}}``); rows are stored
    the other way round, as base units per currency unit. A response
    without a date is taken as of the clock's UTC date.
    """

    def __init__(
        self,
        url_template: str = DEFAULT_RATE_URL,
        timeout: float = 10.0,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.url_template = url_template
        self.timeout = timeout
        self.clock = clock or utcnow

    def fetch_rates(self, base_currency: str) -> RateTable:
        url = self.url_template.format(base=base_currency)
        try:
            response = requests.get(url, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            raise RateSourceError(f"Rate fetch from {url} failed: {e}") from e

        quotes = payload.get("rates")
        if not isinstance(quotes, dict):
            raise RateSourceError(f"Rate response from {url} has no rates table")

        as_of = self.clock().date()
        if payload.get("date"):
            try:
                as_of = date.fromisoformat(payload["date"])
            except ValueError:
                logger.warning("Ignoring unparseable rate date %r", payload["date"])

        rates = {}
        for currency, quote in quotes.items():
            if currency == base_currency:
                continue
            try:
                quote = Decimal(str(quote))
            except InvalidOperation:
                logger.warning("Skipping unparseable quote %s=%r", currency, quote)
                continue
            if quote <= 0:
                continue
            rates[currency] = (Decimal("1") / quote).quantize(RATE_PRECISION)
        return RateTable(base_currency=base_currency, as_of=as_of, rates=rates)


class JsonFileFeedFetcher(FeedFetcher):
    """Reads vendor records from a JSON file.

    The file holds either a list of records or an object with a
    ``transactions`` list. Records dated before ``since`` are dropped unless
    ``respect_window`` is off, as for a one-off import of a statement file.
    Records that are not objects make the batch malformed; the readable
    ones are still handed back on the error.
    """

    def __init__(self, path: str | Path, respect_window: bool = True):
        self.path = Path(path)
        self.respect_window = respect_window

    def fetch(
        self, bank_id: str, credential_handle: str, since: datetime
    ) -> list[dict[str, Any]]:
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise FetchError(FetchErrorKind.TRANSIENT, f"Feed file not found: {self.path}") from e
        except json.JSONDecodeError as e:
            raise FetchError(FetchErrorKind.MALFORMED, f"Feed file is not valid JSON: {e}") from e

        if isinstance(payload, dict):
            payload = payload.get("transactions", [])
        if not isinstance(payload, list):
            raise FetchError(FetchErrorKind.MALFORMED, "Feed file must contain a list of records")

        window = since if self.respect_window else None
        records = [r for r in payload if isinstance(r, dict) and self._in_window(r, window)]
        bad = sum(1 for r in payload if not isinstance(r, dict))
        if bad:
            raise FetchError(
                FetchErrorKind.MALFORMED, f"{bad} feed entries are not records", records=records
            )
        return records

    @staticmethod
    def _in_window(record: dict[str, Any], since: Optional[datetime]) -> bool:
        if since is None:
            return True
        for key in ("date", "txnDate", "valueDate"):
            if record.get(key):
                try:
                    return parse_vendor_datetime(record[key]) >= since
                except ValueError:
                    # Let the normalizer decide what to do with it
                    return True
        return True
