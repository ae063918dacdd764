"""Tests for the engine-facing API."""

import pytest
from datetime import date
from decimal import Decimal

from feedledger.domain.engine import LedgerEngine
from feedledger.domain.entities import BankConnection, PostingResult
from feedledger.domain.errors import ValidationError


@pytest.fixture
def engine(temp_db, fetcher, rate_source, secret_store, config, clock):
    eng = LedgerEngine(
        temp_db,
        fetcher=fetcher,
        rate_source=rate_source,
        secret_store=secret_store,
        config=config,
        clock=clock,
    )
    yield eng
    eng.stop()


BANK_DATA = {
    "bank_id": "razorpay",
    "account_number": "acc_9",
    "account_name": "Razorpay INR",
    "account_type": "GATEWAY",
    "credentials": "key_id:key_secret",
}

DRAFT = {
    "date": "2024-01-15",
    "description": "Consulting invoice",
    "amount": "100",
    "currency": "USD",
    "type": "debit",
    "account_id": 1200,
}


def test_connect_stores_handle_and_schedules(engine, secret_store):
    result = engine.connect(BANK_DATA)

    assert result.success
    connection = result.data
    assert isinstance(connection, BankConnection)
    assert connection.bank_id == "RAZORPAY"
    assert connection.credential_handle != "key_id:key_secret"
    assert secret_store.decrypt(connection.credential_handle) == "key_id:key_secret"
    assert connection.id in engine.scheduler.tasks


def test_connect_unsupported_bank(engine):
    result = engine.connect({**BANK_DATA, "bank_id": "MONZO"})

    assert not result.success
    assert result.error_code == "validation_error"
    assert "Unsupported bank" in result.message


def test_connect_with_unknown_field(engine):
    result = engine.connect({**BANK_DATA, "iban": "X"})

    assert not result.success
    assert result.error_code == "validation_error"


def test_deactivate_connection_unschedules(engine):
    connection = engine.connect(BANK_DATA).data

    result = engine.deactivate_connection(connection.id)

    assert result.success
    assert result.data.is_active is False
    assert connection.id not in engine.scheduler.tasks


def test_sync_now(engine, fetcher):
    connection = engine.connect(BANK_DATA).data
    fetcher.responses["RAZORPAY"] = [{"id": "pay_1", "date": "2024-02-01", "amount": 499}]

    result = engine.sync_now(connection.id)

    assert result.success
    assert result.data.inserted == 1
    assert engine.get_unreconciled_transactions().data[0].external_id == "pay_1"


def test_sync_now_unknown_connection(engine):
    result = engine.sync_now(404)

    assert result.error_code == "not_found"


def test_sync_now_without_fetcher(temp_db, config):
    engine = LedgerEngine(temp_db, config=config)

    result = engine.sync_now(1)

    assert not result.success
    assert result.error_code == "not_configured"
    with pytest.raises(ValidationError):
        engine.start()


def test_post_from_mapping_refreshes_missing_rate(engine):
    result = engine.post_multi_currency_transaction(DRAFT)

    assert result.success
    assert isinstance(result.data, PostingResult)
    assert result.data.base_amount == Decimal("8300")
    assert "8300" in result.message


def test_post_without_rate(engine):
    result = engine.post_multi_currency_transaction({**DRAFT, "currency": "GBP"})

    assert not result.success
    assert result.error_code == "posting_conversionFailed"


def test_post_malformed_mapping(engine):
    result = engine.post_multi_currency_transaction({**DRAFT, "type": "SIDEWAYS"})

    assert result.error_code == "validation_error"


def test_convert(engine):
    result = engine.convert(Decimal("10"), "EUR", "INR")

    assert result.success
    assert result.data == Decimal("900")


def test_convert_invalid_amount(engine):
    assert engine.convert("ten", "EUR", "INR").error_code == "validation_error"


def test_revalue_and_gain_loss(engine, rate_source):
    engine.post_multi_currency_transaction(DRAFT)
    engine.rate_cache.set_rates({"USD": Decimal("85")}, date(2024, 3, 2))

    revalued = engine.revalue(date(2024, 3, 2))
    gain_loss = engine.calculate_forex_gain_loss(1200, date(2024, 3, 2))

    assert revalued.success
    assert revalued.data.total_adjustment == Decimal("200")
    assert gain_loss.data.total_gain_loss == Decimal("200")
    assert engine.revalue(date(2024, 3, 2)).message == "No revaluation adjustment required"


def test_reports(engine):
    engine.post_multi_currency_transaction(DRAFT)

    exposure = engine.get_forex_exposure_report()
    pl = engine.get_multi_currency_pl(date(2024, 1, 1), date(2024, 1, 31))

    assert exposure.data.total_exposure == Decimal("8300")
    assert pl.data.total_expenses_base == Decimal("8300")
    assert engine.get_multi_currency_pl(date(2024, 2, 1), date(2024, 1, 1)).error_code == (
        "validation_error"
    )


def test_mark_reconciled_unknown(engine):
    assert engine.mark_reconciled(7).error_code == "not_found"


def test_categorize_unknown(engine):
    assert engine.categorize(7).error_code == "not_found"


def test_refresh_rates(engine):
    result = engine.refresh_rates()

    assert result.success
    assert result.data.rates["USD"] == Decimal("83")
    assert result.message == "Rates as of 2024-03-01"
