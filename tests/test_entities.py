"""Tests for domain entities."""

import pytest
from dataclasses import FrozenInstanceError
from datetime import date
from decimal import Decimal

from feedledger.domain.entities import (
    BankFeedStats,
    CurrencyPL,
    PLReport,
    RateTable,
    StoreOutcome,
    StoreResult,
    SyncInterval,
    TransactionDraft,
    TransactionType,
)


def test_sync_interval_seconds():
    assert SyncInterval.REALTIME.seconds == 300
    assert SyncInterval.HOURLY.seconds == 3600
    assert SyncInterval.DAILY.seconds == 86400


def test_draft_is_immutable():
    """Test that drafts are frozen once built."""
    draft = TransactionDraft(
        date=date(2024, 1, 15),
        description="Invoice",
        amount=Decimal("100"),
        currency="USD",
        type=TransactionType.DEBIT,
        account_id=1200,
    )
    with pytest.raises(FrozenInstanceError):
        draft.amount = Decimal("200")
    assert draft.contra_account == "Bank Feed Clearing"


def test_rate_table_get():
    table = RateTable("INR", date(2024, 1, 15), {"USD": Decimal("83")})

    assert table.get("INR") == Decimal("1")
    assert table.get("USD") == Decimal("83")
    assert table.get("GBP") is None
    assert table.stale is False


def test_store_result_inserted():
    assert StoreResult(StoreOutcome.INSERTED, 1).inserted
    assert not StoreResult(StoreOutcome.ALREADY_EXISTS, 1).inserted


def test_bank_feed_stats_net_flow():
    stats = BankFeedStats(3, 1, 2, Decimal("500"), Decimal("120.50"))

    assert stats.net_flow == Decimal("379.50")


def test_pl_report_totals():
    report = PLReport(
        base_currency="INR",
        start_date=date(2024, 1, 1),
        end_date=date(2024, 1, 31),
        currencies=(
            CurrencyPL("USD", Decimal("40"), Decimal("100"), Decimal("3320"), Decimal("8300")),
            CurrencyPL("INR", Decimal("1000"), Decimal("0"), Decimal("1000"), Decimal("0")),
        ),
    )

    assert report.currencies[0].profit == Decimal("-60")
    assert report.total_revenue_base == Decimal("4320")
    assert report.total_profit_base == Decimal("-3980")
