"""One fetch, normalize, dedup and post cycle for a bank connection."""

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FetchTimeout
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from feedledger.database.base import Database
from feedledger.domain.categorizer import CategorizerService
from feedledger.domain.entities import BankConnection, SyncResult
from feedledger.domain.errors import (
    DomainError,
    FetchError,
    FetchErrorKind,
    NormalizationError,
    NotFoundError,
    connection_inactive,
    connection_not_found,
)
from feedledger.domain.ingestion import IngestionStore
from feedledger.domain.ledger import LedgerPoster
from feedledger.domain.normalizer import TransactionNormalizer
from feedledger.domain.sources import FeedFetcher
from feedledger.utils.date_parser import utcnow

logger = logging.getLogger(__name__)


class SyncService:
    """Runs sync cycles; each cycle is sequential within its connection."""

    def __init__(
        self,
        db: Database,
        fetcher: FeedFetcher,
        normalizer: Optional[TransactionNormalizer] = None,
        store: Optional[IngestionStore] = None,
        categorizer: Optional[CategorizerService] = None,
        poster: Optional[LedgerPoster] = None,
        lookback_days: int = 90,
        fetch_timeout: float = 30.0,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize sync service.

        Args:
            db: Database instance
            fetcher: Feed fetcher for the connection's bank
            normalizer: Vendor record normalizer
            store: Dedup and ingestion store
            categorizer: Categorizer run on each new record, best effort
            poster: Ledger poster for connections with a ledger account
            lookback_days: Window fetched when a connection has no checkpoint
            fetch_timeout: Seconds before a fetch counts as a transient failure
            clock: Returns the current UTC instant
        """
        self.db = db
        self.fetcher = fetcher
        self.normalizer = normalizer or TransactionNormalizer()
        self.store = store or IngestionStore(db)
        self.categorizer = categorizer
        self.poster = poster
        self.lookback_days = lookback_days
        self.fetch_timeout = fetch_timeout
        self.clock = clock or utcnow

    def sync_connection(self, connection_id: int) -> SyncResult:
        """Run one cycle for a connection.

        Record-level problems are counted and skipped. An auth failure
        deactivates the connection. The checkpoint only advances once the
        whole batch has been stored and posted.

        Raises:
            NotFoundError: If the connection does not exist
        """
        connection = self.db.get_connection(connection_id)
        if connection is None:
            raise NotFoundError(connection_not_found(connection_id))
        if not connection.is_active:
            return SyncResult(
                connection_id=connection_id,
                success=False,
                errors=[connection_inactive(connection_id)],
                error_code="connection_inactive",
            )

        started = self.clock()
        since = connection.last_sync or started - timedelta(days=self.lookback_days)
        errors: list[str] = []

        try:
            records = self._fetch(connection, since)
        except FetchError as e:
            if e.kind is FetchErrorKind.MALFORMED and e.records:
                logger.warning("Connection %s returned a malformed batch: %s", connection_id, e)
                errors.append(str(e))
                records = e.records
            else:
                return self._fetch_failed(connection, e)

        fetched = len(records)
        inserted = duplicates = skipped = posted = 0
        posting_failed = False

        for raw in records:
            try:
                record = self.normalizer.normalize(raw, connection.bank_id, received_at=started)
            except NormalizationError as e:
                skipped += 1
                errors.append(str(e))
                logger.warning("Skipped record on connection %s: %s", connection_id, e)
                continue

            result = self.store.store(connection.id, record)
            if result.inserted:
                inserted += 1
                self._categorize(result.transaction_id)
            else:
                duplicates += 1

            if record.amount > 0 and self._should_post(connection, result.transaction_id):
                try:
                    self.poster.post_feed_transaction(
                        result.transaction_id, connection.currency, connection.ledger_account_id
                    )
                    posted += 1
                except DomainError as e:
                    posting_failed = True
                    errors.append(f"Record {record.external_id}: {e}")

        if posting_failed:
            logger.error(
                "Connection %s: postings failed, checkpoint left at %s", connection_id, since
            )
            return SyncResult(
                connection_id=connection_id,
                success=False,
                fetched=fetched,
                inserted=inserted,
                duplicates=duplicates,
                skipped=skipped,
                posted=posted,
                errors=errors,
                error_code="posting_failed",
            )

        self.db.update_last_sync(connection_id, started)
        logger.info(
            "Synced connection %s: %d fetched, %d new, %d duplicate, %d skipped, %d posted",
            connection_id,
            fetched,
            inserted,
            duplicates,
            skipped,
            posted,
        )
        return SyncResult(
            connection_id=connection_id,
            success=True,
            fetched=fetched,
            inserted=inserted,
            duplicates=duplicates,
            skipped=skipped,
            posted=posted,
            errors=errors,
            checkpoint=started,
        )

    def _fetch(self, connection: BankConnection, since: datetime) -> list[dict[str, Any]]:
        """Call the fetcher with a time limit; overrunning is transient."""
        executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"fetch-{connection.id}"
        )
        try:
            future = executor.submit(
                self.fetcher.fetch, connection.bank_id, connection.credential_handle, since
            )
            try:
                records = future.result(timeout=self.fetch_timeout)
            except FetchTimeout:
                raise FetchError(
                    FetchErrorKind.TRANSIENT,
                    f"Fetch for connection {connection.id} timed out after {self.fetch_timeout}s",
                ) from None
        finally:
            # A hung fetch keeps its worker; this cycle does not wait for it
            executor.shutdown(wait=False)
        return list(records or [])

    def _fetch_failed(self, connection: BankConnection, error: FetchError) -> SyncResult:
        if error.kind is FetchErrorKind.AUTH:
            self.db.set_connection_active(connection.id, False)
            logger.error(
                "Authentication failed for connection %s (%s); connection deactivated: %s",
                connection.id,
                connection.bank_id,
                error,
            )
        else:
            logger.warning("Fetch failed for connection %s, retrying next tick: %s", connection.id, error)
        return SyncResult(
            connection_id=connection.id,
            success=False,
            errors=[str(error)],
            error_code=error.code,
        )

    def _categorize(self, transaction_id: int) -> None:
        if self.categorizer is None:
            return
        try:
            self.categorizer.categorize(transaction_id)
        except Exception:
            logger.exception("Categorizing feed transaction %s failed", transaction_id)

    def _should_post(self, connection: BankConnection, transaction_id: int) -> bool:
        if self.poster is None or connection.ledger_account_id is None or not connection.currency:
            return False
        return not self.poster.is_feed_transaction_posted(transaction_id)
