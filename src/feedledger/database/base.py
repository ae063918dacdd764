"""Abstract database interface."""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Optional
from datetime import date, datetime
from decimal import Decimal

from feedledger.domain.entities import (
    BankConnection,
    BankFeedStats,
    ExchangeRate,
    JournalEntry,
    JournalLeg,
    MultiCurrencyTransaction,
    NormalizedTransaction,
    PositionRevaluation,
    RateTable,
    RawBankTransaction,
    StoreResult,
    SyncInterval,
    TransactionType,
)


class Database(ABC):
    """Abstract database interface for feedledger."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    @abstractmethod
    def unit_of_work(self) -> AbstractContextManager[None]:
        """Scope a group of writes that commit or roll back together.

        Commits when the block exits normally and rolls back on any
        exception. Nested scopes join the outermost one.
        """
        pass

    # Bank connection operations
    @abstractmethod
    def create_connection(
        self,
        bank_id: str,
        account_number: str,
        account_name: str,
        account_type: str,
        credential_handle: str,
        sync_interval: SyncInterval = SyncInterval.HOURLY,
        ledger_account_id: Optional[int] = None,
        currency: Optional[str] = None,
    ) -> int:
        """Create a bank connection. Returns connection ID."""
        pass

    @abstractmethod
    def get_connection(self, connection_id: int) -> Optional[BankConnection]:
        """Get bank connection by ID."""
        pass

    @abstractmethod
    def list_connections(self, active_only: bool = False) -> list[BankConnection]:
        """List bank connections, optionally only active ones."""
        pass

    @abstractmethod
    def set_connection_active(self, connection_id: int, is_active: bool) -> None:
        """Activate or deactivate a connection."""
        pass

    @abstractmethod
    def update_last_sync(self, connection_id: int, last_sync: datetime) -> None:
        """Advance a connection's checkpoint."""
        pass

    # Feed transaction operations
    @abstractmethod
    def store_feed_transaction(
        self, connection_id: int, record: NormalizedTransaction
    ) -> StoreResult:
        """Insert a normalized record unless (connection, external id) exists."""
        pass

    @abstractmethod
    def get_feed_transaction(self, transaction_id: int) -> Optional[RawBankTransaction]:
        """Get feed transaction by ID."""
        pass

    @abstractmethod
    def list_feed_transactions(
        self,
        connection_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        is_reconciled: Optional[bool] = None,
    ) -> list[RawBankTransaction]:
        """List feed transactions, newest first, with optional filters."""
        pass

    @abstractmethod
    def update_feed_transaction_category(
        self, transaction_id: int, category: str, confidence: Optional[Decimal]
    ) -> None:
        """Set category and classifier confidence of a feed transaction."""
        pass

    @abstractmethod
    def set_feed_transaction_reconciled(self, transaction_id: int, is_reconciled: bool) -> None:
        """Set the reconciliation flag of a feed transaction."""
        pass

    @abstractmethod
    def get_feed_stats(self, connection_id: int) -> BankFeedStats:
        """Aggregate counts and totals for one connection's feed."""
        pass

    # Exchange rate operations
    @abstractmethod
    def upsert_exchange_rates(
        self, base_currency: str, effective_date: date, rates: dict[str, Decimal]
    ) -> int:
        """Insert or replace the rows for one effective date. Returns row count."""
        pass

    @abstractmethod
    def get_exchange_rate(
        self, currency: str, base_currency: str, as_of: Optional[date] = None
    ) -> Optional[ExchangeRate]:
        """Get the row with the latest effective date <= as_of."""
        pass

    @abstractmethod
    def get_latest_rate_table(self, base_currency: str) -> Optional[RateTable]:
        """Get the most recent full table stored for a base currency."""
        pass

    @abstractmethod
    def list_exchange_rates(
        self, currency: Optional[str] = None, base_currency: Optional[str] = None
    ) -> list[ExchangeRate]:
        """List stored rates, newest effective date first."""
        pass

    # Ledger operations
    @abstractmethod
    def create_multi_currency_transaction(
        self,
        date: date,
        description: str,
        amount: Decimal,
        currency: str,
        base_amount: Decimal,
        exchange_rate: Decimal,
        transaction_type: TransactionType,
        account_id: int,
        voucher_number: str,
        reference_number: Optional[str] = None,
    ) -> int:
        """Create a multi-currency transaction. Returns transaction ID."""
        pass

    @abstractmethod
    def get_multi_currency_transaction(
        self, transaction_id: int
    ) -> Optional[MultiCurrencyTransaction]:
        """Get multi-currency transaction by ID."""
        pass

    @abstractmethod
    def list_multi_currency_transactions(
        self,
        account_id: Optional[int] = None,
        currency: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        exclude_currency: Optional[str] = None,
    ) -> list[MultiCurrencyTransaction]:
        """List multi-currency transactions in date order."""
        pass

    @abstractmethod
    def list_open_positions(
        self, base_currency: str, as_of: Optional[date] = None
    ) -> list[tuple[int, str]]:
        """Distinct (account_id, currency) pairs holding a foreign currency."""
        pass

    @abstractmethod
    def create_journal_entries(
        self,
        voucher_number: str,
        date: date,
        description: str,
        legs: list[JournalLeg],
        multi_currency_txn_id: Optional[int] = None,
        revaluation_run_id: Optional[int] = None,
    ) -> list[int]:
        """Write the legs of one voucher. Returns leg IDs."""
        pass

    @abstractmethod
    def list_journal_entries(
        self,
        voucher_number: Optional[str] = None,
        multi_currency_txn_id: Optional[int] = None,
        revaluation_run_id: Optional[int] = None,
    ) -> list[JournalEntry]:
        """List journal legs with optional filters."""
        pass

    @abstractmethod
    def get_voucher_totals(self, voucher_number: str) -> tuple[Decimal, Decimal]:
        """Return (sum of debits, sum of credits) for a voucher."""
        pass

    @abstractmethod
    def voucher_exists(self, voucher_number: str) -> bool:
        """Check whether any leg or transaction uses a voucher number."""
        pass

    # Revaluation operations
    @abstractmethod
    def get_recognized_adjustment(
        self, account_id: int, currency: str, as_of: Optional[date] = None
    ) -> Decimal:
        """Sum of adjustments posted for a position by runs dated on or before as_of."""
        pass

    @abstractmethod
    def get_latest_revaluation_date(self, base_currency: str) -> Optional[date]:
        """As-of date of the latest revaluation run that posted a voucher."""
        pass

    @abstractmethod
    def create_revaluation_run(
        self,
        as_of: date,
        base_currency: str,
        total_gain_loss: Decimal,
        total_adjustment: Decimal,
        voucher_number: Optional[str],
        positions: list[PositionRevaluation],
    ) -> int:
        """Record a revaluation run and its per-position lines. Returns run ID."""
        pass
