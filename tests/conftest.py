"""Shared pytest fixtures for feedledger tests."""

import tempfile
import os
import threading
from datetime import date, datetime, timedelta, UTC
from decimal import Decimal
from pathlib import Path
import pytest

from feedledger.config import EngineConfig
from feedledger.database.factories import create_sqlite_database
from feedledger.domain.categorizer import CategorizerService
from feedledger.domain.connection import ConnectionService
from feedledger.domain.converter import CurrencyConverter
from feedledger.domain.ingestion import IngestionStore
from feedledger.domain.ledger import LedgerPoster
from feedledger.domain.rates import ExchangeRateCache
from feedledger.domain.reports import ReportService
from feedledger.domain.revaluation import RevaluationEngine
from feedledger.domain.sources import FeedFetcher, InMemorySecretStore, StaticRateSource
from feedledger.domain.sync import SyncService


class FixedClock:
    """Settable clock injected wherever services need "now"."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeFetcher(FeedFetcher):
    """Feed fetcher serving canned responses per bank.

    A response is a list of vendor records or an exception to raise.
    """

    def __init__(self):
        self.responses: dict[str, object] = {}
        self.calls: list[tuple[str, str, datetime]] = []
        self.release = threading.Event()
        self.block = False

    def fetch(self, bank_id, credential_handle, since):
        self.calls.append((bank_id, credential_handle, since))
        if self.block:
            self.release.wait(timeout=5)
        response = self.responses.get(bank_id, [])
        if isinstance(response, Exception):
            raise response
        return list(response)


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def clock():
    """Clock fixed at 2024-03-01 12:00 UTC."""
    return FixedClock(datetime(2024, 3, 1, 12, 0, tzinfo=UTC))


@pytest.fixture
def secret_store():
    return InMemorySecretStore()


@pytest.fixture
def rate_source():
    """Static upstream table; tests mutate ``rates`` and ``as_of``."""
    return StaticRateSource({"USD": Decimal("83"), "EUR": Decimal("90")}, date(2024, 3, 1))


@pytest.fixture
def rate_cache(temp_db):
    """Rate cache without an upstream source."""
    return ExchangeRateCache(temp_db, base_currency="INR")


@pytest.fixture
def converter(rate_cache):
    return CurrencyConverter(rate_cache)


@pytest.fixture
def connection_service(temp_db, secret_store):
    """Create a ConnectionService with a temporary database."""
    return ConnectionService(temp_db, secret_store)


@pytest.fixture
def ingestion_store(temp_db):
    return IngestionStore(temp_db)


@pytest.fixture
def categorizer_service(temp_db):
    return CategorizerService(temp_db)


@pytest.fixture
def poster(temp_db, converter):
    return LedgerPoster(temp_db, converter)


@pytest.fixture
def revaluation_engine(temp_db, converter, clock):
    return RevaluationEngine(temp_db, converter, clock=clock)


@pytest.fixture
def report_service(temp_db, converter):
    return ReportService(temp_db, converter)


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def sync_service(temp_db, fetcher, ingestion_store, categorizer_service, poster, clock):
    return SyncService(
        temp_db,
        fetcher,
        store=ingestion_store,
        categorizer=categorizer_service,
        poster=poster,
        lookback_days=90,
        fetch_timeout=2.0,
        clock=clock,
    )


@pytest.fixture
def config(temp_db):
    return EngineConfig(database_path=temp_db.database_path, base_currency="INR")


@pytest.fixture
def sample_connection(connection_service):
    """An active HDFC connection without a ledger account."""
    return connection_service.connect(
        bank_id="HDFC",
        account_number="50100012345678",
        account_name="HDFC Current",
        credential_handle="vault-hdfc",
    )


@pytest.fixture
def usd_connection(connection_service):
    """An active Stripe connection posting USD records to ledger account 1200."""
    return connection_service.connect(
        bank_id="STRIPE",
        account_number="acct_1",
        account_name="Stripe USD",
        account_type="GATEWAY",
        credential_handle="vault-stripe",
        ledger_account_id=1200,
        currency="USD",
    )


@pytest.fixture
def usd_rate(rate_cache):
    """USD at 83 INR effective 2024-01-15."""
    return rate_cache.set_rates({"USD": Decimal("83")}, date(2024, 1, 15))


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture
def fixtures_dir():
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"
