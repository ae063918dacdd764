"""Engine-facing API.

Wires the services together and turns every outcome into an
EngineResult, so callers always get a success flag and a message
instead of an exception.
"""

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional

from feedledger.config import EngineConfig
from feedledger.database.base import Database
from feedledger.domain.categorizer import CategorizerService, Classifier
from feedledger.domain.connection import ConnectionService
from feedledger.domain.converter import CurrencyConverter
from feedledger.domain.entities import EngineResult, TransactionDraft, TransactionType
from feedledger.domain.errors import DomainError, ValidationError
from feedledger.domain.ingestion import IngestionStore
from feedledger.domain.ledger import LedgerPoster
from feedledger.domain.normalizer import TransactionNormalizer
from feedledger.domain.rates import ExchangeRateCache
from feedledger.domain.reports import ReportService
from feedledger.domain.revaluation import RevaluationEngine
from feedledger.domain.scheduler import SyncScheduler
from feedledger.domain.sources import FeedFetcher, RateSource, SecretStore
from feedledger.domain.sync import SyncService
from feedledger.utils.date_parser import utcnow

logger = logging.getLogger(__name__)


class LedgerEngine:
    """Multi-currency ledger and bank-feed reconciliation engine."""

    def __init__(
        self,
        db: Database,
        fetcher: Optional[FeedFetcher] = None,
        rate_source: Optional[RateSource] = None,
        secret_store: Optional[SecretStore] = None,
        config: Optional[EngineConfig] = None,
        classifier: Optional[Classifier] = None,
        normalizer: Optional[TransactionNormalizer] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.config = config or EngineConfig()
        self.clock = clock or utcnow

        self.connections = ConnectionService(db, secret_store)
        self.rate_cache = ExchangeRateCache(db, rate_source, self.config.base_currency)
        self.converter = CurrencyConverter(self.rate_cache)
        self.store = IngestionStore(db)
        self.categorizer = CategorizerService(db, classifier)
        self.poster = LedgerPoster(db, self.converter)
        self.revaluation = RevaluationEngine(db, self.converter, clock=self.clock)
        self.reports = ReportService(db, self.converter)
        self.sync_service = (
            SyncService(
                db,
                fetcher,
                normalizer=normalizer,
                store=self.store,
                categorizer=self.categorizer,
                poster=self.poster,
                lookback_days=self.config.lookback_days,
                fetch_timeout=self.config.fetch_timeout,
                clock=self.clock,
            )
            if fetcher is not None
            else None
        )
        self.scheduler = (
            SyncScheduler(
                db,
                self.sync_service,
                rate_cache=self.rate_cache,
                revaluation=self.revaluation,
                rate_refresh_hours=self.config.rate_refresh_hours,
                clock=self.clock,
            )
            if self.sync_service is not None
            else None
        )

    @property
    def base_currency(self) -> str:
        return self.rate_cache.base_currency

    def _run(self, action: str, operation: Callable[[], Any], message: Callable[[Any], str]) -> EngineResult:
        try:
            data = operation()
        except DomainError as e:
            logger.warning("%s failed: %s", action, e)
            return EngineResult(success=False, message=str(e), error_code=e.code)
        return EngineResult(success=True, message=message(data), data=data)

    def connect(self, bank_data: dict[str, Any]) -> EngineResult:
        """Create a connection from a mapping of connect() arguments."""

        def operation():
            connection = self.connections.connect(**bank_data)
            if self.scheduler is not None:
                self.scheduler.schedule(connection)
            return connection

        try:
            return self._run(
                "connect", operation, lambda c: f"Connected {c.bank_id} account {c.account_name}"
            )
        except TypeError as e:
            return EngineResult(False, f"Invalid connection data: {e}", ValidationError.code)

    def deactivate_connection(self, connection_id: int) -> EngineResult:
        def operation():
            connection = self.connections.deactivate(connection_id)
            if self.scheduler is not None:
                self.scheduler.unschedule(connection_id)
            return connection

        return self._run(
            "deactivate", operation, lambda c: f"Deactivated connection {c.id}"
        )

    def sync_now(self, connection_id: int) -> EngineResult:
        """Run one sync cycle for a connection immediately."""
        if self.sync_service is None:
            return EngineResult(False, "No feed fetcher configured", "not_configured")
        try:
            result = self.sync_service.sync_connection(connection_id)
        except DomainError as e:
            return EngineResult(False, str(e), e.code)
        if result.success:
            message = f"Synced {result.inserted} new transaction(s), {result.duplicates} duplicate(s)"
        else:
            message = "; ".join(result.errors) or "Sync failed"
        return EngineResult(result.success, message, result.error_code, result)

    def get_unreconciled_transactions(self, connection_id: Optional[int] = None) -> EngineResult:
        return self._run(
            "unreconciled",
            lambda: self.store.get_unreconciled(connection_id),
            lambda txns: f"{len(txns)} unreconciled transaction(s)",
        )

    def mark_reconciled(self, transaction_id: int) -> EngineResult:
        return self._run(
            "reconcile",
            lambda: self.store.mark_reconciled(transaction_id),
            lambda t: f"Transaction {t.id} reconciled",
        )

    def categorize(self, transaction_id: int) -> EngineResult:
        return self._run(
            "categorize",
            lambda: self.categorizer.categorize(transaction_id),
            lambda p: f"Categorized as {p.category} ({p.confidence})",
        )

    def get_bank_feed_stats(self, connection_id: int) -> EngineResult:
        return self._run(
            "stats",
            lambda: self.connections.get_bank_feed_stats(connection_id),
            lambda s: f"{s.total_transactions} transaction(s), {s.pending_count} pending",
        )

    def convert(
        self, amount: Decimal, from_currency: str, to_currency: str, as_of: Optional[date] = None
    ) -> EngineResult:
        def operation():
            try:
                value = Decimal(str(amount))
            except InvalidOperation:
                raise ValidationError(f"Invalid amount '{amount}'")
            return self.converter.convert(value, from_currency, to_currency, as_of)

        return self._run(
            "convert",
            operation,
            lambda converted: f"{amount} {from_currency} = {converted} {to_currency}",
        )

    def post_multi_currency_transaction(self, draft: TransactionDraft | dict[str, Any]) -> EngineResult:
        """Post a draft, given as a TransactionDraft or a mapping of its fields."""

        def operation():
            return self.poster.post(self._to_draft(draft))

        return self._run(
            "post",
            operation,
            lambda r: f"Posted {r.base_amount} {self.base_currency} (voucher {r.voucher_number})",
        )

    def post_feed_transaction(
        self, raw_transaction_id: int, currency: str, account_id: int
    ) -> EngineResult:
        return self._run(
            "post feed transaction",
            lambda: self.poster.post_feed_transaction(raw_transaction_id, currency, account_id),
            lambda r: f"Posted {r.base_amount} {self.base_currency} (voucher {r.voucher_number})",
        )

    def _to_draft(self, draft: TransactionDraft | dict[str, Any]) -> TransactionDraft:
        if isinstance(draft, TransactionDraft):
            return draft
        fields = dict(draft)
        try:
            fields["amount"] = Decimal(str(fields["amount"]))
            fields["type"] = TransactionType(str(fields["type"]).upper())
            if isinstance(fields.get("date"), str):
                fields["date"] = date.fromisoformat(fields["date"])
            fields.setdefault("date", self.clock().date())
            return TransactionDraft(**fields)
        except (KeyError, TypeError, ValueError, InvalidOperation) as e:
            raise ValidationError(f"Invalid transaction draft: {e}")

    def revalue(self, as_of: Optional[date] = None) -> EngineResult:
        def message(result):
            if not result.posted:
                return "No revaluation adjustment required"
            return f"Posted revaluation of {result.total_adjustment} {self.base_currency} (voucher {result.voucher_number})"

        return self._run("revalue", lambda: self.revaluation.revalue(as_of), message)

    def calculate_forex_gain_loss(self, account_id: int, as_of: Optional[date] = None) -> EngineResult:
        return self._run(
            "forex gain/loss",
            lambda: self.revaluation.calculate_forex_gain_loss(account_id, as_of),
            lambda r: f"Unrealized gain/loss {r.total_gain_loss} {self.base_currency}",
        )

    def get_forex_exposure_report(self) -> EngineResult:
        return self._run(
            "exposure report",
            self.reports.get_forex_exposure_report,
            lambda r: f"Total exposure {r.total_exposure} {r.base_currency}",
        )

    def get_multi_currency_pl(self, start_date: date, end_date: date) -> EngineResult:
        return self._run(
            "profit and loss",
            lambda: self.reports.get_multi_currency_pl(start_date, end_date),
            lambda r: f"Profit {r.total_profit_base} {r.base_currency}",
        )

    def refresh_rates(self) -> EngineResult:
        return self._run(
            "rate refresh",
            self.rate_cache.refresh,
            lambda t: f"Rates as of {t.as_of}{' (stale)' if t.stale else ''}",
        )

    def start(self) -> None:
        """Start background sync, rate refresh and revaluation jobs."""
        if self.scheduler is None:
            raise ValidationError("No feed fetcher configured")
        self.scheduler.start()

    def stop(self) -> None:
        if self.scheduler is not None:
            self.scheduler.stop()
