"""Ledger posting of multi-currency transactions."""

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from feedledger.database.base import Database
from feedledger.domain.converter import CurrencyConverter
from feedledger.domain.currency import normalize_currency, quantize_money, to_money
from feedledger.domain.entities import (
    JournalLeg,
    PostingResult,
    TransactionDraft,
    TransactionType,
)
from feedledger.domain.errors import (
    ConflictError,
    ImmutableRecordError,
    NotFoundError,
    PostingError,
    PostingErrorKind,
    RateUnavailable,
    ValidationError,
    duplicate_voucher,
    raw_transaction_not_found,
    unbalanced_voucher,
)

logger = logging.getLogger(__name__)

RATE_PRECISION = Decimal("0.00000001")


def generate_voucher_number(prefix: str, on: date) -> str:
    """Voucher number such as ``MC-20240115-1A2B3C4D``."""
    return f"{prefix}-{on:%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


def feed_voucher_number(raw_transaction_id: int) -> str:
    """Voucher number of the posting made from a feed transaction."""
    return f"BF-{raw_transaction_id}"


def assert_voucher_balanced(db: Database, voucher_number: str) -> None:
    """Raise PostingError unless the voucher's debits equal its credits."""
    debit, credit = db.get_voucher_totals(voucher_number)
    if debit != credit or debit == 0:
        raise PostingError(
            PostingErrorKind.INTEGRITY_VIOLATION, unbalanced_voucher(voucher_number, debit, credit)
        )


class LedgerPoster:
    """Posts drafts as a frozen transaction plus two balancing legs."""

    def __init__(self, db: Database, converter: CurrencyConverter):
        """Initialize ledger poster.

        Args:
            db: Database instance
            converter: Converter pricing drafts in the base currency
        """
        self.db = db
        self.converter = converter

    @property
    def base_currency(self) -> str:
        return self.converter.base_currency

    def post(self, draft: TransactionDraft) -> PostingResult:
        """Convert and post a draft in one unit of work.

        The transaction row and both legs are written together or not at
        all.

        Args:
            draft: Transaction to post; its amount is unsigned

        Returns:
            PostingResult with the new transaction ID, base amount and rate

        Raises:
            ValidationError: If the draft is malformed
            PostingError: conversionFailed when no rate exists,
                integrityViolation when the write is rejected
        """
        currency, amount = self._validate(draft)

        try:
            rate = self.converter.get_rate(currency, self.base_currency).quantize(RATE_PRECISION)
        except RateUnavailable as e:
            logger.error("Cannot post %s %s: %s", amount, currency, e)
            raise PostingError(PostingErrorKind.CONVERSION_FAILED, str(e)) from e

        base_amount = quantize_money(amount * rate)
        if base_amount == 0:
            raise PostingError(
                PostingErrorKind.CONVERSION_FAILED,
                f"{amount} {currency} converts to zero {self.base_currency}",
            )

        voucher_number = draft.voucher_number or generate_voucher_number("MC", draft.date)
        sign = Decimal("1") if draft.type is TransactionType.DEBIT else Decimal("-1")

        try:
            with self.db.unit_of_work():
                if self.db.voucher_exists(voucher_number):
                    raise PostingError(
                        PostingErrorKind.INTEGRITY_VIOLATION, duplicate_voucher(voucher_number)
                    )
                transaction_id = self.db.create_multi_currency_transaction(
                    date=draft.date,
                    description=draft.description,
                    amount=sign * amount,
                    currency=currency,
                    base_amount=sign * base_amount,
                    exchange_rate=rate,
                    transaction_type=draft.type,
                    account_id=draft.account_id,
                    voucher_number=voucher_number,
                    reference_number=draft.reference_number,
                )
                self.db.create_journal_entries(
                    voucher_number=voucher_number,
                    date=draft.date,
                    description=draft.description,
                    legs=self._legs(draft, base_amount),
                    multi_currency_txn_id=transaction_id,
                )
                assert_voucher_balanced(self.db, voucher_number)
        except PostingError as e:
            logger.error("Posting %s rolled back: %s", voucher_number, e)
            raise
        except (ConflictError, ImmutableRecordError) as e:
            logger.error("Posting %s rolled back: %s", voucher_number, e)
            raise PostingError(PostingErrorKind.INTEGRITY_VIOLATION, str(e)) from e

        logger.info(
            "Posted %s %s %s as %s %s (voucher %s)",
            draft.type.value,
            amount,
            currency,
            base_amount,
            self.base_currency,
            voucher_number,
        )
        return PostingResult(
            transaction_id=transaction_id,
            base_amount=base_amount,
            rate_used=rate,
            voucher_number=voucher_number,
        )

    def _validate(self, draft: TransactionDraft) -> tuple[str, Decimal]:
        try:
            currency = normalize_currency(draft.currency)
        except ValueError as e:
            raise ValidationError(str(e))
        if draft.amount is None:
            raise ValidationError("Amount must be greater than zero")
        try:
            amount = to_money(draft.amount)
        except (ValueError, ArithmeticError) as e:
            raise ValidationError(str(e))
        if amount <= 0:
            raise ValidationError("Amount must be greater than zero")
        if not isinstance(draft.type, TransactionType):
            raise ValidationError(f"Invalid transaction type '{draft.type}'")
        if draft.account_id is None:
            raise ValidationError("An account is required")
        return currency, amount

    @staticmethod
    def _legs(draft: TransactionDraft, base_amount: Decimal) -> list[JournalLeg]:
        account_leg_debit = draft.type is TransactionType.DEBIT
        zero = Decimal("0")
        return [
            JournalLeg(
                account_id=draft.account_id,
                account_name=None,
                debit_amount=base_amount if account_leg_debit else zero,
                credit_amount=zero if account_leg_debit else base_amount,
            ),
            JournalLeg(
                account_id=None,
                account_name=draft.contra_account,
                debit_amount=zero if account_leg_debit else base_amount,
                credit_amount=base_amount if account_leg_debit else zero,
            ),
        ]

    def is_feed_transaction_posted(self, raw_transaction_id: int) -> bool:
        return self.db.voucher_exists(feed_voucher_number(raw_transaction_id))

    def post_feed_transaction(
        self,
        raw_transaction_id: int,
        currency: str,
        account_id: int,
        contra_account: Optional[str] = None,
    ) -> PostingResult:
        """Post a stored feed transaction to a ledger account.

        The voucher number is derived from the feed row, so a second
        attempt fails with integrityViolation instead of posting twice.

        Raises:
            NotFoundError: If the feed transaction does not exist
            PostingError: As for post()
        """
        raw = self.db.get_feed_transaction(raw_transaction_id)
        if raw is None:
            raise NotFoundError(raw_transaction_not_found(raw_transaction_id))

        draft = TransactionDraft(
            date=raw.date.date(),
            description=raw.description or f"Bank feed {raw.external_id}",
            amount=raw.amount,
            currency=currency,
            type=raw.type,
            account_id=account_id,
            reference_number=raw.reference or raw.external_id,
            voucher_number=feed_voucher_number(raw.id),
            **({"contra_account": contra_account} if contra_account else {}),
        )
        return self.post(draft)
