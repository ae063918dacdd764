"""Dedup and ingestion store for normalized feed records."""

import logging
from typing import Optional

from feedledger.database.base import Database
from feedledger.domain.entities import NormalizedTransaction, RawBankTransaction, StoreResult
from feedledger.domain.errors import NotFoundError, raw_transaction_not_found

logger = logging.getLogger(__name__)


class IngestionStore:
    """Idempotent persistence keyed by (connection id, external id)."""

    def __init__(self, db: Database):
        self.db = db

    def store(self, connection_id: int, record: NormalizedTransaction) -> StoreResult:
        """Persist a record; a duplicate is reported, not raised.

        Returns:
            StoreResult with outcome INSERTED or ALREADY_EXISTS and the row ID
        """
        result = self.db.store_feed_transaction(connection_id, record)
        if not result.inserted:
            logger.debug(
                "Feed record %s already stored for connection %s", record.external_id, connection_id
            )
        return result

    def get_transaction(self, transaction_id: int) -> RawBankTransaction:
        """Get a stored feed transaction.

        Raises:
            NotFoundError: If it does not exist
        """
        txn = self.db.get_feed_transaction(transaction_id)
        if txn is None:
            raise NotFoundError(raw_transaction_not_found(transaction_id))
        return txn

    def get_unreconciled(self, connection_id: Optional[int] = None) -> list[RawBankTransaction]:
        """Unreconciled feed transactions, newest first."""
        return self.db.list_feed_transactions(connection_id=connection_id, is_reconciled=False)

    def mark_reconciled(self, transaction_id: int, reconciled: bool = True) -> RawBankTransaction:
        """Set the reconciliation flag of a stored transaction."""
        self.get_transaction(transaction_id)
        self.db.set_feed_transaction_reconciled(transaction_id, reconciled)
        return self.get_transaction(transaction_id)
