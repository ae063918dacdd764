"""Forex exposure and multi-currency profit and loss reports."""

import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Optional

from feedledger.database.base import Database
from feedledger.domain.converter import CurrencyConverter
from feedledger.domain.currency import quantize_money
from feedledger.domain.entities import (
    CurrencyPL,
    ExposureLine,
    ExposureReport,
    MultiCurrencyTransaction,
    PLReport,
    TransactionType,
)
from feedledger.domain.errors import RateUnavailable, ValidationError

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class ReportService:
    """Read-only reports over posted multi-currency transactions."""

    def __init__(self, db: Database, converter: CurrencyConverter):
        self.db = db
        self.converter = converter

    @property
    def base_currency(self) -> str:
        return self.converter.base_currency

    def _group_by_currency(
        self, transactions: list[MultiCurrencyTransaction]
    ) -> dict[str, list[MultiCurrencyTransaction]]:
        grouped: dict[str, list[MultiCurrencyTransaction]] = defaultdict(list)
        for txn in transactions:
            grouped[txn.currency].append(txn)
        return dict(sorted(grouped.items()))

    def get_forex_exposure_report(self, as_of: Optional[date] = None) -> ExposureReport:
        """Open foreign-currency exposure valued at current rates.

        A currency that cannot be priced is carried at its original base
        value and flagged ``priced=False``.
        """
        transactions = self.db.list_multi_currency_transactions(
            end_date=as_of, exclude_currency=self.base_currency
        )
        exposures = []
        for currency, txns in self._group_by_currency(transactions).items():
            total_amount = sum((t.amount for t in txns), ZERO)
            original_base_value = sum((t.base_amount for t in txns), ZERO)
            try:
                rate = self.converter.get_rate(currency, self.base_currency, as_of)
                current_base_value = quantize_money(total_amount * rate)
                priced = True
            except RateUnavailable as e:
                logger.warning("Exposure for %s kept at original value: %s", currency, e)
                current_base_value = original_base_value
                priced = False
            exposures.append(
                ExposureLine(
                    currency=currency,
                    total_amount=total_amount,
                    original_base_value=original_base_value,
                    current_base_value=current_base_value,
                    unrealized_gain_loss=current_base_value - original_base_value,
                    transaction_count=len(txns),
                    priced=priced,
                )
            )
        return ExposureReport(
            base_currency=self.base_currency,
            exposures=tuple(exposures),
            total_exposure=sum((e.current_base_value for e in exposures), ZERO),
        )

    def get_multi_currency_pl(self, start_date: date, end_date: date) -> PLReport:
        """Revenue (credits) and expenses (debits) per currency for a period.

        Raises:
            ValidationError: If start_date is after end_date
        """
        if start_date > end_date:
            raise ValidationError("Start date must be on or before end date")

        transactions = self.db.list_multi_currency_transactions(
            start_date=start_date, end_date=end_date
        )
        currencies = []
        for currency, txns in self._group_by_currency(transactions).items():
            credits = [t for t in txns if t.type is TransactionType.CREDIT]
            debits = [t for t in txns if t.type is TransactionType.DEBIT]
            currencies.append(
                CurrencyPL(
                    currency=currency,
                    revenue=sum((abs(t.amount) for t in credits), ZERO),
                    expenses=sum((abs(t.amount) for t in debits), ZERO),
                    revenue_base=sum((abs(t.base_amount) for t in credits), ZERO),
                    expenses_base=sum((abs(t.base_amount) for t in debits), ZERO),
                )
            )
        return PLReport(
            base_currency=self.base_currency,
            start_date=start_date,
            end_date=end_date,
            currencies=tuple(currencies),
        )
