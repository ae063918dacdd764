"""Tests for write-once enforcement on ledger records."""

import pytest
from datetime import date, datetime, UTC
from decimal import Decimal

from feedledger.database.models import (
    BankConnection as ORMBankConnection,
    BankFeedTransaction as ORMBankFeedTransaction,
    JournalEntry as ORMJournalEntry,
    MultiCurrencyTransaction as ORMMultiCurrencyTransaction,
)
from feedledger.domain.entities import NormalizedTransaction, TransactionDraft, TransactionType
from feedledger.domain.errors import ImmutableRecordError


@pytest.fixture
def posted(poster, usd_rate):
    return poster.post(
        TransactionDraft(
            date=date(2024, 1, 15),
            description="Invoice",
            amount=Decimal("100"),
            currency="USD",
            type=TransactionType.DEBIT,
            account_id=1200,
        )
    )


def _session(db):
    return db.session_factory()


def test_posted_transaction_cannot_be_updated(temp_db, posted):
    session = _session(temp_db)
    row = session.get(ORMMultiCurrencyTransaction, posted.transaction_id)
    row.base_currency_amount = Decimal("9000")

    with pytest.raises(ImmutableRecordError):
        session.flush()
    session.rollback()

    assert temp_db.get_multi_currency_transaction(posted.transaction_id).base_amount == Decimal("8300")


def test_journal_leg_cannot_be_deleted(temp_db, posted):
    session = _session(temp_db)
    leg = session.query(ORMJournalEntry).filter_by(voucher_number=posted.voucher_number).first()
    session.delete(leg)

    with pytest.raises(ImmutableRecordError):
        session.flush()
    session.rollback()

    assert len(temp_db.list_journal_entries(voucher_number=posted.voucher_number)) == 2


def test_feed_transaction_identity_is_write_once(temp_db, ingestion_store, sample_connection):
    stored = ingestion_store.store(
        sample_connection.id,
        NormalizedTransaction(
            external_id="T1",
            date=datetime(2024, 1, 15, tzinfo=UTC),
            description="Payment",
            amount=Decimal("10"),
            type=TransactionType.CREDIT,
            balance=None,
            reference=None,
            raw_blob="{}",
        ),
    )
    session = _session(temp_db)
    row = session.get(ORMBankFeedTransaction, stored.transaction_id)
    row.amount = Decimal("11")

    with pytest.raises(ImmutableRecordError, match="amount"):
        session.flush()
    session.rollback()

    ingestion_store.mark_reconciled(stored.transaction_id)
    assert ingestion_store.get_transaction(stored.transaction_id).is_reconciled


def test_connection_cannot_be_deleted(temp_db, sample_connection):
    session = _session(temp_db)
    session.delete(session.get(ORMBankConnection, sample_connection.id))

    with pytest.raises(ImmutableRecordError, match="deactivated"):
        session.flush()
    session.rollback()


def test_latest_rate_can_be_corrected(rate_cache):
    rate_cache.set_rates({"USD": Decimal("83")}, date(2024, 1, 15))

    rate_cache.set_rates({"USD": Decimal("83.10")}, date(2024, 1, 15))

    assert rate_cache.get_rate("USD", date(2024, 1, 15)) == Decimal("83.10")


def test_historical_rate_is_frozen(rate_cache):
    """Test a rate superseded by a later date can no longer change."""
    rate_cache.set_rates({"USD": Decimal("83")}, date(2024, 1, 15))
    rate_cache.set_rates({"USD": Decimal("85")}, date(2024, 2, 15))

    with pytest.raises(ImmutableRecordError, match="historical"):
        rate_cache.set_rates({"USD": Decimal("84")}, date(2024, 1, 15))

    assert rate_cache.get_rate("USD", date(2024, 1, 31)) == Decimal("83")
