"""SQLAlchemy models for the feedledger database."""

from datetime import datetime, UTC
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    ForeignKey,
    DateTime,
    Date,
    Numeric,
    Boolean,
    CheckConstraint,
    Index,
    UniqueConstraint,
    create_engine,
    event,
)
from sqlalchemy.orm import declarative_base, relationship, scoped_session, sessionmaker

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class BankConnection(Base):
    """Bank or payment-gateway connection. Deactivated, never deleted."""

    __tablename__ = "bank_connections"

    id = Column(Integer, primary_key=True)
    bank_id = Column(String, nullable=False)
    account_number = Column(String, nullable=False)
    account_name = Column(String, nullable=False)
    account_type = Column(String, nullable=False)
    credential_handle = Column(String, nullable=False)
    sync_interval = Column(String, default="HOURLY", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    last_sync = Column(DateTime, nullable=True)
    ledger_account_id = Column(Integer, nullable=True)
    currency = Column(String(3), nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    # Relationships
    transactions = relationship("BankFeedTransaction", back_populates="connection")


class BankFeedTransaction(Base):
    """Raw feed transaction as ingested from a connection."""

    __tablename__ = "bank_feed_transactions"

    id = Column(Integer, primary_key=True)
    connection_id = Column(Integer, ForeignKey("bank_connections.id"), nullable=False)
    external_id = Column(String, nullable=False)
    transaction_date = Column(DateTime, nullable=False)
    description = Column(String, nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    transaction_type = Column(String, nullable=False)
    balance = Column(Numeric(15, 2), nullable=True)
    category = Column(String, default="UNCATEGORIZED", nullable=False)
    reference = Column(String, nullable=True)
    is_reconciled = Column(Boolean, default=False, nullable=False)
    ai_confidence = Column(Numeric(4, 2), nullable=True)
    raw_blob = Column(Text, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    # Dedup key
    __table_args__ = (
        UniqueConstraint("connection_id", "external_id", name="uq_connection_external_id"),
        CheckConstraint("transaction_type IN ('DEBIT', 'CREDIT')", name="ck_feed_txn_type"),
        Index("idx_feed_txn_reconciled", "is_reconciled"),
    )

    # Relationships
    connection = relationship("BankConnection", back_populates="transactions")


class ExchangeRate(Base):
    """Currency->base rate effective on a date. Append-only per date."""

    __tablename__ = "exchange_rates"

    id = Column(Integer, primary_key=True)
    currency_code = Column(String(3), nullable=False)
    base_currency = Column(String(3), nullable=False)
    rate = Column(Numeric(18, 8), nullable=False)
    effective_date = Column(Date, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "currency_code", "base_currency", "effective_date", name="uq_rate_currency_base_date"
        ),
        CheckConstraint("rate > 0", name="ck_rate_positive"),
        Index("idx_exchange_rate_date", "effective_date"),
    )


class MultiCurrencyTransaction(Base):
    """Posted transaction with its frozen base amount and rate."""

    __tablename__ = "multi_currency_transactions"

    id = Column(Integer, primary_key=True)
    transaction_date = Column(Date, nullable=False)
    description = Column(String, nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    base_currency_amount = Column(Numeric(15, 2), nullable=False)
    exchange_rate = Column(Numeric(18, 8), nullable=False)
    transaction_type = Column(String, nullable=False)
    account_id = Column(Integer, nullable=False)
    reference_number = Column(String, nullable=True)
    voucher_number = Column(String, nullable=False, unique=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("transaction_type IN ('DEBIT', 'CREDIT')", name="ck_mct_type"),
        CheckConstraint("exchange_rate > 0", name="ck_mct_rate_positive"),
        Index("idx_mct_account_currency", "account_id", "currency"),
    )

    # Relationships
    journal_entries = relationship("JournalEntry", back_populates="multi_currency_transaction")


class RevaluationRun(Base):
    """One revaluation run that posted an adjusting voucher."""

    __tablename__ = "revaluation_runs"

    id = Column(Integer, primary_key=True)
    as_of_date = Column(Date, nullable=False)
    base_currency = Column(String(3), nullable=False)
    total_gain_loss = Column(Numeric(15, 2), nullable=False)
    total_adjustment = Column(Numeric(15, 2), nullable=False)
    voucher_number = Column(String, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    # Relationships
    lines = relationship("RevaluationLine", back_populates="run")
    journal_entries = relationship("JournalEntry", back_populates="revaluation_run")


class RevaluationLine(Base):
    """Adjustment recognized for one position in a revaluation run."""

    __tablename__ = "revaluation_lines"

    id = Column(Integer, primary_key=True)
    run_id = Column(Integer, ForeignKey("revaluation_runs.id"), nullable=False)
    account_id = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False)
    rate = Column(Numeric(18, 8), nullable=False)
    gain_loss = Column(Numeric(15, 2), nullable=False)
    adjustment = Column(Numeric(15, 2), nullable=False)

    __table_args__ = (Index("idx_reval_line_position", "account_id", "currency"),)

    # Relationships
    run = relationship("RevaluationRun", back_populates="lines")


class JournalEntry(Base):
    """One debit or credit leg of a voucher."""

    __tablename__ = "journal_entries"

    id = Column(Integer, primary_key=True)
    transaction_date = Column(Date, nullable=False)
    description = Column(String, nullable=False)
    debit_amount = Column(Numeric(15, 2), default=0, nullable=False)
    credit_amount = Column(Numeric(15, 2), default=0, nullable=False)
    account_id = Column(Integer, nullable=True)
    account_name = Column(String, nullable=True)
    voucher_number = Column(String, nullable=False)
    multi_currency_txn_id = Column(
        Integer, ForeignKey("multi_currency_transactions.id"), nullable=True
    )
    revaluation_run_id = Column(Integer, ForeignKey("revaluation_runs.id"), nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    # A leg is exactly one of debit or credit
    __table_args__ = (
        CheckConstraint("debit_amount >= 0 AND credit_amount >= 0", name="ck_leg_non_negative"),
        CheckConstraint(
            "(debit_amount = 0 AND credit_amount > 0) OR (debit_amount > 0 AND credit_amount = 0)",
            name="ck_leg_one_side",
        ),
        CheckConstraint(
            "account_id IS NOT NULL OR account_name IS NOT NULL", name="ck_leg_has_account"
        ),
        Index("idx_journal_voucher", "voucher_number"),
    )

    # Relationships
    multi_currency_transaction = relationship(
        "MultiCurrencyTransaction", back_populates="journal_entries"
    )
    revaluation_run = relationship("RevaluationRun", back_populates="journal_entries")


def create_session_factory(database_url: str) -> scoped_session:
    """Create a thread-scoped SQLAlchemy session factory."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(database_url, echo=False, connect_args=connect_args)
    if database_url.startswith("sqlite"):
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    Base.metadata.create_all(engine)
    return scoped_session(sessionmaker(bind=engine, expire_on_commit=False))


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
