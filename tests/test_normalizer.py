"""Tests for vendor record normalization."""

import json
import pytest
from datetime import datetime, UTC
from decimal import Decimal

from feedledger.domain.entities import TransactionType, UNCATEGORIZED
from feedledger.domain.errors import NormalizationError
from feedledger.domain.normalizer import FieldRule, TransactionNormalizer


@pytest.fixture
def normalizer():
    return TransactionNormalizer()


def test_normalize_canonical_shape(normalizer):
    """Test the common field names map straight through."""
    record = {
        "id": "TXN-1",
        "date": "2024-01-15T10:30:00Z",
        "description": "Office supplies",
        "amount": -1250.50,
        "balance": "48,750.00",
        "reference": "REF123",
    }

    result = normalizer.normalize(record, "HDFC")

    assert result.external_id == "TXN-1"
    assert result.date == datetime(2024, 1, 15, 10, 30, tzinfo=UTC)
    assert result.description == "Office supplies"
    assert result.amount == Decimal("1250.5")
    assert result.type == TransactionType.DEBIT
    assert result.balance == Decimal("48750.00")
    assert result.reference == "REF123"
    assert result.category == UNCATEGORIZED
    assert json.loads(result.raw_blob) == record


def test_normalize_alternate_field_names(normalizer):
    """Test txnId/txnDate/narration/refNumber are resolved in order."""
    record = {
        "txnId": "A-9",
        "txnDate": "2024-02-01",
        "narration": "NEFT from client",
        "amount": "5000",
        "refNumber": "N123",
    }

    result = normalizer.normalize(record)

    assert result.external_id == "A-9"
    assert result.date == datetime(2024, 2, 1, tzinfo=UTC)
    assert result.description == "NEFT from client"
    assert result.type == TransactionType.CREDIT
    assert result.reference == "N123"


def test_normalize_prefers_first_field(normalizer):
    """Test date wins over valueDate and description over remarks."""
    record = {
        "transaction_id": 77,
        "date": "2024-03-01",
        "valueDate": "2024-03-05",
        "description": "Primary",
        "remarks": "Secondary",
        "amount": 10,
    }

    result = normalizer.normalize(record)

    assert result.external_id == "77"
    assert result.date.day == 1
    assert result.description == "Primary"


def test_empty_value_falls_through_to_next_field(normalizer):
    record = {"id": "X", "description": "", "remarks": "Fallback", "amount": 1}

    assert normalizer.normalize(record).description == "Fallback"


def test_explicit_type_is_case_normalized(normalizer):
    """Test an explicit type wins over the amount sign."""
    record = {"id": "1", "amount": 100, "type": "debit"}

    result = normalizer.normalize(record)

    assert result.type == TransactionType.DEBIT
    assert result.amount == Decimal("100")


def test_debit_flag_infers_debit(normalizer):
    record = {"id": "1", "amount": 100, "debit": True}

    assert normalizer.normalize(record).type == TransactionType.DEBIT


@pytest.mark.parametrize(
    "flag,expected",
    [
        ("true", TransactionType.DEBIT),
        ("Y", TransactionType.DEBIT),
        (1, TransactionType.DEBIT),
        ("false", TransactionType.CREDIT),
        ("0", TransactionType.CREDIT),
        (False, TransactionType.CREDIT),
        ("maybe", TransactionType.CREDIT),
    ],
)
def test_debit_flag_strings(normalizer, flag, expected):
    record = {"id": "1", "amount": "50", "debit": flag}

    assert normalizer.normalize(record).type == expected


def test_unknown_explicit_type_is_inferred(normalizer):
    record = {"id": "1", "amount": -5, "type": "PAYMENT"}

    assert normalizer.normalize(record).type == TransactionType.DEBIT


def test_missing_id_raises(normalizer):
    with pytest.raises(NormalizationError, match="no transaction id"):
        normalizer.normalize({"amount": 10})


def test_missing_amount_raises(normalizer):
    with pytest.raises(NormalizationError, match="no amount"):
        normalizer.normalize({"id": "1", "description": "x"})


def test_unparseable_amount_raises(normalizer):
    with pytest.raises(NormalizationError):
        normalizer.normalize({"id": "1", "amount": "abc"})


def test_sub_cent_amount_raises(normalizer):
    with pytest.raises(NormalizationError, match="more than two decimal places"):
        normalizer.normalize({"id": "1", "amount": "10.005"})


def test_trailing_zeros_are_trimmed_to_cents(normalizer):
    assert normalizer.normalize({"id": "1", "amount": "-10.500"}).amount == Decimal("10.50")


def test_missing_date_uses_received_at(normalizer):
    received = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)

    result = normalizer.normalize({"id": "1", "amount": 1}, received_at=received)

    assert result.date == received


def test_bank_rules_override_defaults():
    """Test per-bank rules replace the default rule for a field."""
    normalizer = TransactionNormalizer(
        bank_rules={"razorpay": (FieldRule("external_id", ("payment_id",)),)}
    )
    record = {"payment_id": "pay_1", "id": "ignored", "amount": 10}

    assert normalizer.normalize(record, "RAZORPAY").external_id == "pay_1"
    assert normalizer.normalize(record, "HDFC").external_id == "ignored"
