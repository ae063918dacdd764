"""ORM-level write-once enforcement for ledger records.

A ``before_flush`` listener inspects dirty and deleted instances:

- MultiCurrencyTransaction, JournalEntry and revaluation rows are never
  updated or deleted.
- BankFeedTransaction rows only change category, ai_confidence, is_reconciled.
- ExchangeRate rows are only rewritten for the latest effective date of
  their currency; older dates are history.
- BankConnection rows are deactivated, never deleted.

Violations raise ImmutableRecordError before any SQL reaches the database.
"""

from sqlalchemy import event, func, inspect
from sqlalchemy.orm import Session

from feedledger.database.models import (
    BankConnection,
    BankFeedTransaction,
    ExchangeRate,
    JournalEntry,
    MultiCurrencyTransaction,
    RevaluationLine,
    RevaluationRun,
)
from feedledger.domain.errors import ImmutableRecordError


FROZEN_MODELS = (MultiCurrencyTransaction, JournalEntry, RevaluationRun, RevaluationLine)
FEED_MUTABLE_FIELDS = frozenset({"category", "ai_confidence", "is_reconciled"})


def _changed_fields(instance) -> set[str]:
    state = inspect(instance)
    return {attr.key for attr in state.attrs if attr.history.has_changes()}


def _check_rate_update(session: Session, rate: ExchangeRate) -> None:
    history = inspect(rate).attrs.effective_date.history
    effective = history.deleted[0] if history.deleted else rate.effective_date
    with session.no_autoflush:
        latest = (
            session.query(func.max(ExchangeRate.effective_date))
            .filter(
                ExchangeRate.currency_code == rate.currency_code,
                ExchangeRate.base_currency == rate.base_currency,
            )
            .scalar()
        )
    if history.deleted or (latest is not None and effective < latest):
        raise ImmutableRecordError(
            f"Exchange rate {rate.currency_code} for {effective} is historical"
        )


def check_flush(session: Session) -> None:
    """Raise ImmutableRecordError if pending changes touch write-once data."""
    for instance in list(session.dirty):
        if not session.is_modified(instance, include_collections=False):
            continue
        if isinstance(instance, FROZEN_MODELS):
            raise ImmutableRecordError(
                f"{type(instance).__name__} {instance.id} is immutable once posted"
            )
        if isinstance(instance, BankFeedTransaction):
            illegal = _changed_fields(instance) - FEED_MUTABLE_FIELDS
            if illegal:
                raise ImmutableRecordError(
                    f"Feed transaction {instance.id}: fields {', '.join(sorted(illegal))} are write-once"
                )
        if isinstance(instance, ExchangeRate):
            _check_rate_update(session, instance)

    for instance in session.deleted:
        if isinstance(instance, FROZEN_MODELS + (BankFeedTransaction, ExchangeRate)):
            raise ImmutableRecordError(f"{type(instance).__name__} {instance.id} cannot be deleted")
        if isinstance(instance, BankConnection):
            raise ImmutableRecordError(
                f"Bank connection {instance.id} must be deactivated, not deleted"
            )


def _before_flush(session, flush_context, instances) -> None:
    check_flush(session)


def register_immutability_listeners(session_factory) -> None:
    """Attach the write-once guard to every session the factory produces."""
    if not event.contains(session_factory, "before_flush", _before_flush):
        event.listen(session_factory, "before_flush", _before_flush)
