"""Revaluation of open foreign-currency positions."""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Optional

from feedledger.database.base import Database
from feedledger.domain.converter import CurrencyConverter
from feedledger.domain.currency import quantize_money
from feedledger.domain.entities import (
    ForexGainLossDetail,
    ForexGainLossReport,
    JournalLeg,
    PositionRevaluation,
    RevaluationResult,
    SkippedPosition,
)
from feedledger.domain.errors import (
    ConflictError,
    ImmutableRecordError,
    PostingError,
    PostingErrorKind,
    RateUnavailable,
    RevaluationError,
    revaluation_superseded,
)
from feedledger.domain.ledger import assert_voucher_balanced, generate_voucher_number
from feedledger.utils.date_parser import utcnow

logger = logging.getLogger(__name__)

GAIN_ACCOUNT = "Foreign Exchange Gain"
LOSS_ACCOUNT = "Foreign Exchange Loss"
ZERO = Decimal("0")


class RevaluationEngine:
    """Recognizes unrealized gain or loss on foreign-currency positions.

    A position is every posted transaction of one account in one foreign
    currency. Its gain or loss is the current base value less the base
    amounts frozen at posting. Each run posts only the part not already
    recognized by earlier runs, so an unchanged rate posts nothing.
    """

    def __init__(
        self,
        db: Database,
        converter: CurrencyConverter,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.converter = converter
        self.clock = clock or utcnow

    @property
    def base_currency(self) -> str:
        return self.converter.base_currency

    def revalue(self, as_of: Optional[date] = None) -> RevaluationResult:
        """Revalue every open position and post one adjusting voucher.

        Positions that cannot be priced are skipped and reported; the rest
        of the run proceeds. A zero aggregate adjustment posts nothing.

        Args:
            as_of: Valuation date (defaults to today)

        Returns:
            RevaluationResult with per-position detail

        Raises:
            RevaluationError: If it would post before an already posted run
            PostingError: If the adjusting voucher cannot be written
        """
        as_of = as_of or self.clock().date()
        positions: list[PositionRevaluation] = []
        skipped: list[SkippedPosition] = []

        for account_id, currency in self.db.list_open_positions(self.base_currency, as_of):
            try:
                positions.append(self.revalue_position(account_id, currency, as_of))
            except RevaluationError as e:
                logger.warning("Skipping position %s/%s: %s", account_id, currency, e)
                skipped.append(SkippedPosition(account_id, currency, str(e)))

        total_gain_loss = sum((p.gain_loss for p in positions), ZERO)
        total_adjustment = sum((p.adjustment for p in positions), ZERO)

        if total_adjustment == 0:
            logger.info("Revaluation as of %s: nothing to adjust", as_of)
            return RevaluationResult(
                as_of=as_of,
                total_gain_loss=total_gain_loss,
                total_adjustment=ZERO,
                positions=positions,
                skipped=skipped,
            )

        latest = self.db.get_latest_revaluation_date(self.base_currency)
        if latest is not None and as_of < latest:
            raise RevaluationError(revaluation_superseded(as_of, latest))

        voucher_number = generate_voucher_number("FX-REV", as_of)
        description = f"Foreign exchange revaluation as of {as_of.isoformat()}"
        try:
            with self.db.unit_of_work():
                run_id = self.db.create_revaluation_run(
                    as_of=as_of,
                    base_currency=self.base_currency,
                    total_gain_loss=total_gain_loss,
                    total_adjustment=total_adjustment,
                    voucher_number=voucher_number,
                    positions=positions,
                )
                self.db.create_journal_entries(
                    voucher_number=voucher_number,
                    date=as_of,
                    description=description,
                    legs=self._legs(positions, total_adjustment),
                    revaluation_run_id=run_id,
                )
                assert_voucher_balanced(self.db, voucher_number)
        except (ConflictError, ImmutableRecordError) as e:
            logger.error("Revaluation voucher %s rolled back: %s", voucher_number, e)
            raise PostingError(PostingErrorKind.INTEGRITY_VIOLATION, str(e)) from e

        logger.info(
            "Revaluation as of %s posted %s %s (voucher %s)",
            as_of,
            total_adjustment,
            self.base_currency,
            voucher_number,
        )
        return RevaluationResult(
            as_of=as_of,
            total_gain_loss=total_gain_loss,
            total_adjustment=total_adjustment,
            positions=positions,
            skipped=skipped,
            run_id=run_id,
            voucher_number=voucher_number,
        )

    def revalue_position(self, account_id: int, currency: str, as_of: date) -> PositionRevaluation:
        """Value one position without posting anything.

        Raises:
            RevaluationError: If the currency cannot be priced as of the date
        """
        transactions = self.db.list_multi_currency_transactions(
            account_id=account_id, currency=currency, end_date=as_of
        )
        original_amount = sum((t.amount for t in transactions), ZERO)
        posted_base_amount = sum((t.base_amount for t in transactions), ZERO)

        try:
            rate = self.converter.get_rate(currency, self.base_currency, as_of)
        except RateUnavailable as e:
            raise RevaluationError(str(e), account_id=account_id, currency=currency) from e

        current_value = quantize_money(original_amount * rate)
        gain_loss = current_value - posted_base_amount
        previously_recognized = self.db.get_recognized_adjustment(account_id, currency, as_of)
        return PositionRevaluation(
            account_id=account_id,
            currency=currency,
            original_amount=original_amount,
            posted_base_amount=posted_base_amount,
            current_rate=rate,
            current_value=current_value,
            gain_loss=gain_loss,
            previously_recognized=previously_recognized,
            adjustment=gain_loss - previously_recognized,
        )

    @staticmethod
    def _legs(positions: list[PositionRevaluation], total_adjustment: Decimal) -> list[JournalLeg]:
        legs = []
        for position in positions:
            if position.adjustment > 0:
                legs.append(JournalLeg(position.account_id, None, position.adjustment, ZERO))
            elif position.adjustment < 0:
                legs.append(JournalLeg(position.account_id, None, ZERO, -position.adjustment))

        if total_adjustment > 0:
            legs.append(JournalLeg(None, GAIN_ACCOUNT, ZERO, total_adjustment))
        else:
            legs.append(JournalLeg(None, LOSS_ACCOUNT, -total_adjustment, ZERO))
        return legs

    def calculate_forex_gain_loss(
        self, account_id: int, as_of: Optional[date] = None
    ) -> ForexGainLossReport:
        """Per-transaction unrealized gain or loss for one account.

        Read-only; nothing is posted.

        Raises:
            RateUnavailable: If a currency of the account cannot be priced
        """
        as_of = as_of or self.clock().date()
        transactions = self.db.list_multi_currency_transactions(
            account_id=account_id, end_date=as_of, exclude_currency=self.base_currency
        )
        rates: dict[str, Decimal] = {}
        details = []
        for txn in transactions:
            if txn.currency not in rates:
                rates[txn.currency] = self.converter.get_rate(txn.currency, self.base_currency, as_of)
            current_value = quantize_money(txn.amount * rates[txn.currency])
            details.append(
                ForexGainLossDetail(
                    transaction_id=txn.id,
                    date=txn.date,
                    amount=txn.amount,
                    currency=txn.currency,
                    original_rate=txn.exchange_rate,
                    current_rate=rates[txn.currency],
                    original_value=txn.base_amount,
                    current_value=current_value,
                    gain_loss=current_value - txn.base_amount,
                )
            )
        return ForexGainLossReport(
            account_id=account_id,
            as_of=as_of,
            total_gain_loss=sum((d.gain_loss for d in details), ZERO),
            details=tuple(details),
        )
