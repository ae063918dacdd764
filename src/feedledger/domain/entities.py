"""Domain model entities for feedledger.

These are pure data classes representing ledger and feed concepts,
independent of database schema. Services and the database layer exchange
these instead of ORM rows so posted records cannot be mutated by accident.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


UNCATEGORIZED = "UNCATEGORIZED"


class SyncInterval(str, Enum):
    """Sync cadence classes for a bank connection."""

    REALTIME = "REALTIME"
    HOURLY = "HOURLY"
    DAILY = "DAILY"

    @property
    def seconds(self) -> int:
        return {"REALTIME": 300, "HOURLY": 3600, "DAILY": 86400}[self.value]


class TransactionType(str, Enum):
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class StoreOutcome(str, Enum):
    INSERTED = "inserted"
    ALREADY_EXISTS = "alreadyExists"


@dataclass(frozen=True)
class BankConnection:
    """Bank or payment-gateway connection domain entity."""

    id: int
    bank_id: str
    account_number: str
    account_name: str
    account_type: str
    credential_handle: str
    sync_interval: SyncInterval
    is_active: bool
    last_sync: Optional[datetime]
    created_at: datetime
    ledger_account_id: Optional[int] = None
    currency: Optional[str] = None


@dataclass(frozen=True)
class NormalizedTransaction:
    """Canonical shape of one vendor record after normalization."""

    external_id: str
    date: datetime
    description: str
    amount: Decimal
    type: TransactionType
    balance: Optional[Decimal]
    reference: Optional[str]
    raw_blob: str
    category: str = UNCATEGORIZED


@dataclass(frozen=True)
class RawBankTransaction:
    """Stored feed transaction domain entity."""

    id: int
    connection_id: int
    external_id: str
    date: datetime
    description: str
    amount: Decimal
    type: TransactionType
    balance: Optional[Decimal]
    category: str
    is_reconciled: bool
    ai_confidence: Optional[Decimal]
    reference: Optional[str]
    raw_blob: str
    created_at: datetime


@dataclass(frozen=True)
class StoreResult:
    outcome: StoreOutcome
    transaction_id: int

    @property
    def inserted(self) -> bool:
        return self.outcome is StoreOutcome.INSERTED


@dataclass(frozen=True)
class ExchangeRate:
    """One currency->base rate row."""

    id: int
    currency: str
    base_currency: str
    rate: Decimal
    effective_date: date
    created_at: datetime


@dataclass(frozen=True)
class RateTable:
    """A full currency->base rate table effective on one date."""

    base_currency: str
    as_of: date
    rates: dict[str, Decimal]
    stale: bool = False

    def get(self, currency: str) -> Optional[Decimal]:
        if currency == self.base_currency:
            return Decimal("1")
        return self.rates.get(currency)


@dataclass(frozen=True)
class TransactionDraft:
    """Input to the ledger poster.

    ``amount`` is unsigned; the posted row stores it signed by ``type``
    (DEBIT positive, CREDIT negative).
    """

    date: date
    description: str
    amount: Decimal
    currency: str
    type: TransactionType
    account_id: int
    reference_number: Optional[str] = None
    voucher_number: Optional[str] = None
    contra_account: str = "Bank Feed Clearing"


@dataclass(frozen=True)
class MultiCurrencyTransaction:
    """Posted multi-currency transaction. Never edited after creation."""

    id: int
    date: date
    description: str
    amount: Decimal
    currency: str
    base_amount: Decimal
    exchange_rate: Decimal
    type: TransactionType
    account_id: int
    reference_number: Optional[str]
    voucher_number: str
    created_at: datetime


@dataclass(frozen=True)
class JournalLeg:
    """A leg that has not been written yet."""

    account_id: Optional[int]
    account_name: Optional[str]
    debit_amount: Decimal
    credit_amount: Decimal


@dataclass(frozen=True)
class JournalEntry:
    """A single written debit or credit leg."""

    id: int
    date: date
    description: str
    debit_amount: Decimal
    credit_amount: Decimal
    account_id: Optional[int]
    account_name: Optional[str]
    voucher_number: str
    multi_currency_txn_id: Optional[int]
    revaluation_run_id: Optional[int]
    created_at: datetime


@dataclass(frozen=True)
class PostingResult:
    transaction_id: int
    base_amount: Decimal
    rate_used: Decimal
    voucher_number: str


@dataclass(frozen=True)
class PositionRevaluation:
    """Revaluation of one (account, currency) position."""

    account_id: int
    currency: str
    original_amount: Decimal
    posted_base_amount: Decimal
    current_rate: Decimal
    current_value: Decimal
    gain_loss: Decimal
    previously_recognized: Decimal
    adjustment: Decimal


@dataclass(frozen=True)
class SkippedPosition:
    account_id: int
    currency: str
    message: str


@dataclass(frozen=True)
class RevaluationResult:
    as_of: date
    total_gain_loss: Decimal
    total_adjustment: Decimal
    positions: list[PositionRevaluation]
    skipped: list[SkippedPosition] = field(default_factory=list)
    run_id: Optional[int] = None
    voucher_number: Optional[str] = None

    @property
    def posted(self) -> bool:
        return self.voucher_number is not None


@dataclass(frozen=True)
class CategoryPrediction:
    category: str
    confidence: Decimal


@dataclass(frozen=True)
class SyncResult:
    """Outcome of one fetch->normalize->dedup->post cycle."""

    connection_id: int
    success: bool
    fetched: int = 0
    inserted: int = 0
    duplicates: int = 0
    skipped: int = 0
    posted: int = 0
    errors: list[str] = field(default_factory=list)
    error_code: Optional[str] = None
    checkpoint: Optional[datetime] = None


@dataclass(frozen=True)
class BankFeedStats:
    total_transactions: int
    reconciled_count: int
    pending_count: int
    total_credits: Decimal
    total_debits: Decimal

    @property
    def net_flow(self) -> Decimal:
        return self.total_credits - self.total_debits


@dataclass(frozen=True)
class EngineResult:
    """Structured result returned by the engine-facing API."""

    success: bool
    message: str
    error_code: Optional[str] = None
    data: Any = None


@dataclass(frozen=True)
class ForexGainLossDetail:
    transaction_id: int
    date: date
    amount: Decimal
    currency: str
    original_rate: Decimal
    current_rate: Decimal
    original_value: Decimal
    current_value: Decimal
    gain_loss: Decimal


@dataclass(frozen=True)
class ForexGainLossReport:
    account_id: int
    as_of: date
    total_gain_loss: Decimal
    details: tuple[ForexGainLossDetail, ...]


@dataclass(frozen=True)
class ExposureLine:
    currency: str
    total_amount: Decimal
    original_base_value: Decimal
    current_base_value: Decimal
    unrealized_gain_loss: Decimal
    transaction_count: int
    priced: bool = True


@dataclass(frozen=True)
class ExposureReport:
    base_currency: str
    exposures: tuple[ExposureLine, ...]
    total_exposure: Decimal


@dataclass(frozen=True)
class CurrencyPL:
    currency: str
    revenue: Decimal
    expenses: Decimal
    revenue_base: Decimal
    expenses_base: Decimal

    @property
    def profit(self) -> Decimal:
        return self.revenue - self.expenses

    @property
    def profit_base(self) -> Decimal:
        return self.revenue_base - self.expenses_base


@dataclass(frozen=True)
class PLReport:
    base_currency: str
    start_date: date
    end_date: date
    currencies: tuple[CurrencyPL, ...]

    @property
    def total_revenue_base(self) -> Decimal:
        return sum((c.revenue_base for c in self.currencies), Decimal("0"))

    @property
    def total_expenses_base(self) -> Decimal:
        return sum((c.expenses_base for c in self.currencies), Decimal("0"))

    @property
    def total_profit_base(self) -> Decimal:
        return self.total_revenue_base - self.total_expenses_base
