"""Vendor record normalization.

Each canonical field is resolved through an ordered list of candidate
vendor keys; the first key present with a non-empty value wins. Supporting
a new vendor shape means appending a key, or registering per-bank rules.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from feedledger.domain.currency import to_money
from feedledger.domain.entities import NormalizedTransaction, TransactionType, UNCATEGORIZED
from feedledger.domain.errors import NormalizationError
from feedledger.utils.amount_parser import parse_amount
from feedledger.utils.date_parser import parse_vendor_datetime, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldRule:
    """Ordered vendor keys for one canonical field."""

    field: str
    keys: tuple[str, ...]

    def resolve(self, record: dict[str, Any]) -> Any:
        for key in self.keys:
            value = record.get(key)
            if value is not None and value != "":
                return value
        return None


DEFAULT_RULES: tuple[FieldRule, ...] = (
    FieldRule("external_id", ("id", "txnId", "transaction_id")),
    FieldRule("date", ("date", "txnDate", "valueDate")),
    FieldRule("description", ("description", "narration", "remarks")),
    FieldRule("amount", ("amount",)),
    FieldRule("type", ("type",)),
    FieldRule("debit_flag", ("debit",)),
    FieldRule("balance", ("balance",)),
    FieldRule("reference", ("reference", "refNumber")),
)

TYPE_ALIASES = {
    "DEBIT": TransactionType.DEBIT,
    "DR": TransactionType.DEBIT,
    "D": TransactionType.DEBIT,
    "CREDIT": TransactionType.CREDIT,
    "CR": TransactionType.CREDIT,
    "C": TransactionType.CREDIT,
}

TRUE_FLAGS = frozenset({"true", "t", "yes", "y", "1"})
FALSE_FLAGS = frozenset({"false", "f", "no", "n", "0"})


def parse_flag(value: Any) -> bool:
    """Interpret a vendor boolean sent as a JSON bool, number or string.

    Raises:
        ValueError: If a string is not a recognized flag
    """
    if value is None:
        return False
    if isinstance(value, (bool, int, float, Decimal)):
        return bool(value)
    text = str(value).strip().lower()
    if text in TRUE_FLAGS:
        return True
    if text in FALSE_FLAGS:
        return False
    raise ValueError(f"Unrecognized flag value {value!r}")


class TransactionNormalizer:
    """Maps heterogeneous vendor records into NormalizedTransaction."""

    def __init__(
        self,
        rules: tuple[FieldRule, ...] = DEFAULT_RULES,
        bank_rules: Optional[dict[str, tuple[FieldRule, ...]]] = None,
    ):
        """Initialize normalizer.

        Args:
            rules: Default field rules
            bank_rules: Per-bank rules replacing the defaults field by field
        """
        self.rules = rules
        self.bank_rules = {k.upper(): v for k, v in (bank_rules or {}).items()}

    def rules_for(self, bank_id: Optional[str]) -> dict[str, FieldRule]:
        resolved = {rule.field: rule for rule in self.rules}
        for rule in self.bank_rules.get((bank_id or "").upper(), ()):
            resolved[rule.field] = rule
        return resolved

    def normalize(
        self,
        record: dict[str, Any],
        bank_id: Optional[str] = None,
        received_at: Optional[datetime] = None,
    ) -> NormalizedTransaction:
        """Normalize one vendor record.

        Args:
            record: Raw vendor record
            bank_id: Bank identifier selecting per-bank rules
            received_at: Fallback timestamp when the record has no usable date

        Returns:
            NormalizedTransaction with category UNCATEGORIZED

        Raises:
            NormalizationError: If no usable id or amount can be resolved, or
                the amount has more than two decimal places
        """
        if not isinstance(record, dict):
            raise NormalizationError(f"Vendor record must be an object, got {type(record).__name__}")
        rules = self.rules_for(bank_id)

        external_id = rules["external_id"].resolve(record)
        if external_id is None:
            raise NormalizationError("Vendor record has no transaction id")

        raw_amount = rules["amount"].resolve(record)
        if raw_amount is None:
            raise NormalizationError(f"Vendor record {external_id} has no amount")
        try:
            signed_amount = to_money(parse_amount(raw_amount))
        except ValueError as e:
            raise NormalizationError(f"Vendor record {external_id}: {e}") from e

        return NormalizedTransaction(
            external_id=str(external_id),
            date=self._resolve_date(rules, record, external_id, received_at),
            description=str(rules["description"].resolve(record) or ""),
            amount=abs(signed_amount),
            type=self._resolve_type(rules, record, signed_amount),
            balance=self._resolve_balance(rules, record),
            reference=self._optional_str(rules["reference"].resolve(record)),
            raw_blob=json.dumps(record, default=str, sort_keys=True),
            category=UNCATEGORIZED,
        )

    @staticmethod
    def _resolve_date(rules, record, external_id, received_at) -> datetime:
        raw_date = rules["date"].resolve(record)
        if raw_date is not None:
            try:
                return parse_vendor_datetime(raw_date)
            except ValueError:
                logger.warning("Record %s has unparseable date %r", external_id, raw_date)
        return received_at or utcnow()

    @staticmethod
    def _resolve_type(rules, record, signed_amount: Decimal) -> TransactionType:
        explicit = rules["type"].resolve(record)
        if explicit is not None:
            resolved = TYPE_ALIASES.get(str(explicit).strip().upper())
            if resolved is not None:
                return resolved
            logger.warning("Unknown transaction type %r, inferring from amount", explicit)

        if signed_amount < 0:
            return TransactionType.DEBIT
        raw_flag = rules["debit_flag"].resolve(record)
        try:
            is_debit = parse_flag(raw_flag)
        except ValueError:
            logger.warning("Ignoring unrecognized debit flag %r", raw_flag)
            is_debit = False
        return TransactionType.DEBIT if is_debit else TransactionType.CREDIT

    @staticmethod
    def _resolve_balance(rules, record) -> Optional[Decimal]:
        raw_balance = rules["balance"].resolve(record)
        if raw_balance is None:
            return None
        try:
            return parse_amount(raw_balance)
        except ValueError:
            return None

    @staticmethod
    def _optional_str(value) -> Optional[str]:
        return None if value is None else str(value)
