"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic so services only ever see frozen
domain entities, never live ORM rows.
"""

from datetime import datetime, UTC
from decimal import Decimal

from feedledger.domain import entities as domain
from feedledger.database.models import (
    BankConnection as ORMBankConnection,
    BankFeedTransaction as ORMBankFeedTransaction,
    ExchangeRate as ORMExchangeRate,
    MultiCurrencyTransaction as ORMMultiCurrencyTransaction,
    JournalEntry as ORMJournalEntry,
)


def _decimal(value) -> Decimal:
    if value is None:
        return None
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _utc(value: datetime) -> datetime:
    """SQLite returns naive timestamps; they are stored in UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def connection_to_domain(orm_connection: ORMBankConnection) -> domain.BankConnection:
    """Convert SQLAlchemy BankConnection model to domain BankConnection entity."""
    return domain.BankConnection(
        id=orm_connection.id,
        bank_id=orm_connection.bank_id,
        account_number=orm_connection.account_number,
        account_name=orm_connection.account_name,
        account_type=orm_connection.account_type,
        credential_handle=orm_connection.credential_handle,
        sync_interval=domain.SyncInterval(orm_connection.sync_interval),
        is_active=orm_connection.is_active,
        last_sync=_utc(orm_connection.last_sync),
        created_at=orm_connection.created_at,
        ledger_account_id=orm_connection.ledger_account_id,
        currency=orm_connection.currency,
    )


def raw_transaction_to_domain(orm_txn: ORMBankFeedTransaction) -> domain.RawBankTransaction:
    """Convert SQLAlchemy BankFeedTransaction model to domain RawBankTransaction entity."""
    return domain.RawBankTransaction(
        id=orm_txn.id,
        connection_id=orm_txn.connection_id,
        external_id=orm_txn.external_id,
        date=_utc(orm_txn.transaction_date),
        description=orm_txn.description,
        amount=_decimal(orm_txn.amount),
        type=domain.TransactionType(orm_txn.transaction_type),
        balance=_decimal(orm_txn.balance),
        category=orm_txn.category,
        is_reconciled=orm_txn.is_reconciled,
        ai_confidence=_decimal(orm_txn.ai_confidence),
        reference=orm_txn.reference,
        raw_blob=orm_txn.raw_blob,
        created_at=orm_txn.created_at,
    )


def exchange_rate_to_domain(orm_rate: ORMExchangeRate) -> domain.ExchangeRate:
    """Convert SQLAlchemy ExchangeRate model to domain ExchangeRate entity."""
    return domain.ExchangeRate(
        id=orm_rate.id,
        currency=orm_rate.currency_code,
        base_currency=orm_rate.base_currency,
        rate=_decimal(orm_rate.rate),
        effective_date=orm_rate.effective_date,
        created_at=orm_rate.created_at,
    )


def multi_currency_transaction_to_domain(
    orm_txn: ORMMultiCurrencyTransaction,
) -> domain.MultiCurrencyTransaction:
    """Convert SQLAlchemy MultiCurrencyTransaction model to domain entity."""
    return domain.MultiCurrencyTransaction(
        id=orm_txn.id,
        date=orm_txn.transaction_date,
        description=orm_txn.description,
        amount=_decimal(orm_txn.amount),
        currency=orm_txn.currency,
        base_amount=_decimal(orm_txn.base_currency_amount),
        exchange_rate=_decimal(orm_txn.exchange_rate),
        type=domain.TransactionType(orm_txn.transaction_type),
        account_id=orm_txn.account_id,
        reference_number=orm_txn.reference_number,
        voucher_number=orm_txn.voucher_number,
        created_at=orm_txn.created_at,
    )


def journal_entry_to_domain(orm_entry: ORMJournalEntry) -> domain.JournalEntry:
    """Convert SQLAlchemy JournalEntry model to domain JournalEntry entity."""
    return domain.JournalEntry(
        id=orm_entry.id,
        date=orm_entry.transaction_date,
        description=orm_entry.description,
        debit_amount=_decimal(orm_entry.debit_amount),
        credit_amount=_decimal(orm_entry.credit_amount),
        account_id=orm_entry.account_id,
        account_name=orm_entry.account_name,
        voucher_number=orm_entry.voucher_number,
        multi_currency_txn_id=orm_entry.multi_currency_txn_id,
        revaluation_run_id=orm_entry.revaluation_run_id,
        created_at=orm_entry.created_at,
    )
