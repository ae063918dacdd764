"""Tests for sync cycles."""

import pytest
from datetime import date, datetime, timedelta, UTC
from decimal import Decimal

from feedledger.domain.categorizer import CategorizerService, Classifier
from feedledger.domain.errors import FetchError, FetchErrorKind, NotFoundError
from feedledger.domain.sync import SyncService


HDFC_RECORDS = [
    {
        "txnId": "H-1",
        "txnDate": "2024-02-28T09:15:00+05:30",
        "narration": "NEFT salary credit",
        "amount": "150000.00",
        "type": "CR",
    },
    {
        "txnId": "H-2",
        "txnDate": "2024-02-29",
        "narration": "Office rent March",
        "amount": "-45000",
    },
]

STRIPE_RECORDS = [
    {"id": "ch_1", "date": "2024-02-20T10:00:00Z", "description": "Customer payment", "amount": 120},
    {"id": "re_1", "date": "2024-02-21T10:00:00Z", "description": "Refund", "amount": "-20.50"},
]


def test_first_sync_fetches_lookback_window(sync_service, fetcher, sample_connection, clock, temp_db):
    fetcher.responses["HDFC"] = HDFC_RECORDS

    result = sync_service.sync_connection(sample_connection.id)

    assert result.success
    assert result.fetched == 2
    assert result.inserted == 2
    assert result.duplicates == 0
    assert result.checkpoint == clock.now
    assert fetcher.calls == [("HDFC", "vault-hdfc", clock.now - timedelta(days=90))]
    assert temp_db.get_connection(sample_connection.id).last_sync == clock.now


def test_next_sync_starts_at_checkpoint(sync_service, fetcher, sample_connection, clock):
    sync_service.sync_connection(sample_connection.id)
    first_checkpoint = clock.now
    clock.advance(hours=1)

    sync_service.sync_connection(sample_connection.id)

    assert fetcher.calls[1][2] == first_checkpoint


def test_refetched_records_are_duplicates(sync_service, fetcher, sample_connection, temp_db):
    fetcher.responses["HDFC"] = HDFC_RECORDS
    sync_service.sync_connection(sample_connection.id)

    result = sync_service.sync_connection(sample_connection.id)

    assert result.inserted == 0
    assert result.duplicates == 2
    assert len(temp_db.list_feed_transactions(connection_id=sample_connection.id)) == 2


def test_new_records_are_categorized(sync_service, fetcher, sample_connection, temp_db):
    fetcher.responses["HDFC"] = HDFC_RECORDS

    sync_service.sync_connection(sample_connection.id)

    categories = {t.external_id: t.category for t in temp_db.list_feed_transactions()}
    assert categories == {"H-1": "PAYROLL", "H-2": "RENT"}


def test_categorizer_failure_does_not_fail_sync(temp_db, fetcher, sample_connection, clock):
    class BrokenClassifier(Classifier):
        def classify(self, description):
            raise RuntimeError("model offline")

    service = SyncService(
        temp_db, fetcher, categorizer=CategorizerService(temp_db, BrokenClassifier()), clock=clock
    )
    fetcher.responses["HDFC"] = HDFC_RECORDS

    result = service.sync_connection(sample_connection.id)

    assert result.success
    assert result.inserted == 2
    assert {t.category for t in temp_db.list_feed_transactions()} == {"UNCATEGORIZED"}


def test_unnormalizable_record_is_skipped(sync_service, fetcher, sample_connection):
    fetcher.responses["HDFC"] = HDFC_RECORDS + [{"narration": "no id", "amount": 5}]

    result = sync_service.sync_connection(sample_connection.id)

    assert result.success
    assert result.inserted == 2
    assert result.skipped == 1
    assert "no transaction id" in result.errors[0]


def test_transient_failure_keeps_checkpoint(sync_service, fetcher, sample_connection, temp_db):
    fetcher.responses["HDFC"] = FetchError(FetchErrorKind.TRANSIENT, "gateway timeout")

    result = sync_service.sync_connection(sample_connection.id)

    assert not result.success
    assert result.error_code == "fetch_transient"
    connection = temp_db.get_connection(sample_connection.id)
    assert connection.last_sync is None
    assert connection.is_active


def test_auth_failure_deactivates_connection(sync_service, fetcher, sample_connection, temp_db):
    fetcher.responses["HDFC"] = FetchError(FetchErrorKind.AUTH, "token revoked")

    result = sync_service.sync_connection(sample_connection.id)

    assert result.error_code == "fetch_auth"
    assert temp_db.get_connection(sample_connection.id).is_active is False


def test_malformed_batch_without_records_fails(sync_service, fetcher, sample_connection):
    fetcher.responses["HDFC"] = FetchError(FetchErrorKind.MALFORMED, "not json")

    result = sync_service.sync_connection(sample_connection.id)

    assert not result.success
    assert result.error_code == "fetch_malformed"


def test_malformed_batch_keeps_readable_records(sync_service, fetcher, sample_connection, clock):
    fetcher.responses["HDFC"] = FetchError(
        FetchErrorKind.MALFORMED, "1 feed entries are not records", records=HDFC_RECORDS[:1]
    )

    result = sync_service.sync_connection(sample_connection.id)

    assert result.success
    assert result.inserted == 1
    assert result.errors == ["1 feed entries are not records"]
    assert result.checkpoint == clock.now


def test_hung_fetch_times_out_as_transient(temp_db, fetcher, sample_connection, clock):
    service = SyncService(temp_db, fetcher, fetch_timeout=0.1, clock=clock)
    fetcher.block = True
    try:
        result = service.sync_connection(sample_connection.id)
    finally:
        fetcher.release.set()

    assert result.error_code == "fetch_transient"
    assert "timed out" in result.errors[0]
    assert temp_db.get_connection(sample_connection.id).last_sync is None


def test_inactive_connection_is_not_synced(sync_service, fetcher, connection_service, sample_connection):
    connection_service.deactivate(sample_connection.id)

    result = sync_service.sync_connection(sample_connection.id)

    assert result.error_code == "connection_inactive"
    assert fetcher.calls == []


def test_unknown_connection(sync_service):
    with pytest.raises(NotFoundError):
        sync_service.sync_connection(42)


def test_ledger_connection_posts_new_records(sync_service, fetcher, usd_connection, usd_rate, temp_db):
    fetcher.responses["STRIPE"] = STRIPE_RECORDS

    result = sync_service.sync_connection(usd_connection.id)

    assert result.success
    assert result.posted == 2
    txns = temp_db.list_multi_currency_transactions(account_id=1200)
    assert [(t.date, t.amount, t.base_amount) for t in txns] == [
        (date(2024, 2, 20), Decimal("-120"), Decimal("-9960")),
        (date(2024, 2, 21), Decimal("20.50"), Decimal("1701.50")),
    ]
    assert all(t.voucher_number.startswith("BF-") for t in txns)


def test_zero_amount_record_is_stored_not_posted(sync_service, fetcher, usd_connection, usd_rate, temp_db):
    fetcher.responses["STRIPE"] = [{"id": "adj_0", "date": "2024-02-20", "amount": "0"}]

    result = sync_service.sync_connection(usd_connection.id)

    assert result.success
    assert result.inserted == 1
    assert result.posted == 0
    assert temp_db.list_multi_currency_transactions() == []


def test_posting_failure_holds_checkpoint_until_retry(
    sync_service, fetcher, usd_connection, rate_cache, temp_db, clock
):
    """Test records stored without a rate are posted on the next cycle."""
    fetcher.responses["STRIPE"] = STRIPE_RECORDS[:1]

    failed = sync_service.sync_connection(usd_connection.id)

    assert not failed.success
    assert failed.error_code == "posting_failed"
    assert failed.inserted == 1
    assert temp_db.get_connection(usd_connection.id).last_sync is None

    rate_cache.set_rates({"USD": Decimal("83")}, date(2024, 2, 1))
    retried = sync_service.sync_connection(usd_connection.id)

    assert retried.success
    assert retried.duplicates == 1
    assert retried.posted == 1
    assert fetcher.calls[1][2] == clock.now - timedelta(days=90)
    assert len(temp_db.list_multi_currency_transactions()) == 1


def test_posted_duplicates_are_not_posted_again(sync_service, fetcher, usd_connection, usd_rate, temp_db):
    fetcher.responses["STRIPE"] = STRIPE_RECORDS
    sync_service.sync_connection(usd_connection.id)

    result = sync_service.sync_connection(usd_connection.id)

    assert result.success
    assert result.posted == 0
    assert len(temp_db.list_multi_currency_transactions()) == 2


def test_record_dates_are_utc(sync_service, fetcher, sample_connection, temp_db):
    fetcher.responses["HDFC"] = HDFC_RECORDS[:1]

    sync_service.sync_connection(sample_connection.id)

    [txn] = temp_db.list_feed_transactions()
    assert txn.date == datetime(2024, 2, 28, 3, 45, tzinfo=UTC)
