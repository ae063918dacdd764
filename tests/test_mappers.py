"""Tests for database mappers."""

from datetime import datetime, date, UTC
from decimal import Decimal

from feedledger.database.models import (
    BankConnection as ORMBankConnection,
    BankFeedTransaction as ORMBankFeedTransaction,
    ExchangeRate as ORMExchangeRate,
    JournalEntry as ORMJournalEntry,
    MultiCurrencyTransaction as ORMMultiCurrencyTransaction,
)
from feedledger.database.mappers import (
    connection_to_domain,
    exchange_rate_to_domain,
    journal_entry_to_domain,
    multi_currency_transaction_to_domain,
    raw_transaction_to_domain,
)
from feedledger.domain.entities import (
    BankConnection,
    MultiCurrencyTransaction,
    RawBankTransaction,
    SyncInterval,
    TransactionType,
)


class TestConnectionMapper:
    """Tests for BankConnection mapper."""

    def test_connection_to_domain(self):
        """Test converting ORM BankConnection to domain BankConnection."""
        orm_connection = ORMBankConnection(
            id=1,
            bank_id="HDFC",
            account_number="5010",
            account_name="HDFC Current",
            account_type="CURRENT",
            credential_handle="vault-1",
            sync_interval="DAILY",
            is_active=True,
            last_sync=datetime(2024, 1, 15, 9, 0),
            created_at=datetime(2024, 1, 1, tzinfo=UTC),
            ledger_account_id=None,
            currency=None,
        )
        connection = connection_to_domain(orm_connection)

        assert isinstance(connection, BankConnection)
        assert connection.sync_interval is SyncInterval.DAILY
        assert connection.last_sync == datetime(2024, 1, 15, 9, 0, tzinfo=UTC)
        assert connection.credential_handle == "vault-1"

    def test_connection_without_checkpoint(self):
        orm_connection = ORMBankConnection(
            id=2,
            bank_id="SBI",
            account_number="1",
            account_name="SBI",
            account_type="SAVINGS",
            credential_handle="h",
            sync_interval="HOURLY",
            is_active=False,
            last_sync=None,
            created_at=datetime.now(UTC),
        )

        connection = connection_to_domain(orm_connection)

        assert connection.last_sync is None
        assert connection.is_active is False


class TestFeedTransactionMapper:
    """Tests for BankFeedTransaction mapper."""

    def test_raw_transaction_to_domain(self):
        orm_txn = ORMBankFeedTransaction(
            id=5,
            connection_id=1,
            external_id="TXN-5",
            transaction_date=datetime(2024, 1, 15, 4, 30),
            description="UPI payment",
            amount=Decimal("250.00"),
            transaction_type="DEBIT",
            balance=None,
            category="UNCATEGORIZED",
            is_reconciled=False,
            ai_confidence=0.85,
            reference="UPI123",
            raw_blob="{}",
            created_at=datetime.now(UTC),
        )

        txn = raw_transaction_to_domain(orm_txn)

        assert isinstance(txn, RawBankTransaction)
        assert txn.date.tzinfo is UTC
        assert txn.type is TransactionType.DEBIT
        assert txn.balance is None
        assert txn.ai_confidence == Decimal("0.85")


class TestLedgerMappers:
    """Tests for rate, transaction and journal mappers."""

    def test_exchange_rate_to_domain(self):
        orm_rate = ORMExchangeRate(
            id=1,
            currency_code="USD",
            base_currency="INR",
            rate="83.25000000",
            effective_date=date(2024, 1, 15),
            created_at=datetime.now(UTC),
        )

        rate = exchange_rate_to_domain(orm_rate)

        assert rate.currency == "USD"
        assert rate.rate == Decimal("83.25")
        assert isinstance(rate.rate, Decimal)

    def test_multi_currency_transaction_to_domain(self):
        orm_txn = ORMMultiCurrencyTransaction(
            id=3,
            transaction_date=date(2024, 1, 15),
            description="Invoice",
            amount=Decimal("-100.00"),
            currency="USD",
            base_currency_amount=Decimal("-8300.00"),
            exchange_rate=Decimal("83.00000000"),
            transaction_type="CREDIT",
            account_id=1200,
            reference_number=None,
            voucher_number="MC-20240115-ABCDEF12",
            created_at=datetime.now(UTC),
        )

        txn = multi_currency_transaction_to_domain(orm_txn)

        assert isinstance(txn, MultiCurrencyTransaction)
        assert txn.type is TransactionType.CREDIT
        assert txn.base_amount == Decimal("-8300")
        assert txn.date == date(2024, 1, 15)

    def test_journal_entry_to_domain(self):
        orm_entry = ORMJournalEntry(
            id=9,
            transaction_date=date(2024, 1, 15),
            description="Invoice",
            debit_amount=Decimal("0"),
            credit_amount=Decimal("8300.00"),
            account_id=None,
            account_name="Bank Feed Clearing",
            voucher_number="MC-1",
            multi_currency_txn_id=3,
            revaluation_run_id=None,
            created_at=datetime.now(UTC),
        )

        entry = journal_entry_to_domain(orm_entry)

        assert entry.account_name == "Bank Feed Clearing"
        assert entry.credit_amount == Decimal("8300")
        assert entry.multi_currency_txn_id == 3
