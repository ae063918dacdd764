"""Bank connection domain service."""

import logging
from typing import Optional

from feedledger.database.base import Database
from feedledger.domain.currency import normalize_currency
from feedledger.domain.entities import BankConnection, BankFeedStats, SyncInterval
from feedledger.domain.errors import (
    NotFoundError,
    ValidationError,
    connection_not_found,
    unsupported_bank,
)
from feedledger.domain.sources import SecretStore

logger = logging.getLogger(__name__)


SUPPORTED_BANKS: dict[str, str] = {
    "HDFC": "HDFC Bank",
    "ICICI": "ICICI Bank",
    "SBI": "State Bank of India",
    "AXIS": "Axis Bank",
    "KOTAK": "Kotak Mahindra Bank",
    "RAZORPAY": "Razorpay",
    "STRIPE": "Stripe",
    "PAYTM": "Paytm",
}


class ConnectionService:
    """Service for managing bank connections."""

    def __init__(self, db: Database, secret_store: Optional[SecretStore] = None):
        """Initialize connection service.

        Args:
            db: Database instance
            secret_store: Store that turns credentials into handles
        """
        self.db = db
        self.secret_store = secret_store

    def connect(
        self,
        bank_id: str,
        account_number: str,
        account_name: str,
        account_type: str = "CURRENT",
        credentials: Optional[str] = None,
        credential_handle: Optional[str] = None,
        sync_interval: SyncInterval | str = SyncInterval.HOURLY,
        ledger_account_id: Optional[int] = None,
        currency: Optional[str] = None,
    ) -> BankConnection:
        """Create a bank connection.

        Either raw ``credentials`` (handed to the secret store) or an
        existing ``credential_handle`` must be given.

        Args:
            bank_id: Identifier from SUPPORTED_BANKS
            account_number: Account number at the bank
            account_name: Display name
            account_type: Account type (CURRENT, SAVINGS, GATEWAY, ...)
            credentials: Plaintext credentials to store
            credential_handle: Handle already issued by the secret store
            sync_interval: REALTIME, HOURLY or DAILY
            ledger_account_id: Ledger account synced records are posted to
            currency: Currency of the account, required with ledger_account_id

        Returns:
            Created BankConnection

        Raises:
            ValidationError: If the bank is unsupported or inputs are invalid
        """
        bank_id = (bank_id or "").strip().upper()
        if bank_id not in SUPPORTED_BANKS:
            raise ValidationError(unsupported_bank(bank_id))
        if not account_number or not account_number.strip():
            raise ValidationError("Account number is required")
        if not account_name or not account_name.strip():
            raise ValidationError("Account name is required")

        try:
            interval = SyncInterval(str(sync_interval).upper())
        except ValueError:
            raise ValidationError(f"Invalid sync interval '{sync_interval}'")

        if currency is not None:
            try:
                currency = normalize_currency(currency)
            except ValueError as e:
                raise ValidationError(str(e))
        if ledger_account_id is not None and currency is None:
            raise ValidationError("A currency is required when a ledger account is set")

        handle = self._resolve_handle(credentials, credential_handle)

        connection_id = self.db.create_connection(
            bank_id=bank_id,
            account_number=account_number.strip(),
            account_name=account_name.strip(),
            account_type=(account_type or "CURRENT").strip().upper(),
            credential_handle=handle,
            sync_interval=interval,
            ledger_account_id=ledger_account_id,
            currency=currency,
        )
        logger.info("Connected %s account %s (connection %s)", bank_id, account_name, connection_id)
        return self.get_connection(connection_id)

    def _resolve_handle(self, credentials: Optional[str], credential_handle: Optional[str]) -> str:
        if credentials is not None and credential_handle is not None:
            raise ValidationError("Give either credentials or a credential handle, not both")
        if credential_handle:
            return credential_handle
        if credentials is None:
            raise ValidationError("Credentials are required")
        if self.secret_store is None:
            raise ValidationError("No secret store configured for raw credentials")
        return self.secret_store.encrypt(credentials)

    def get_connection(self, connection_id: int) -> BankConnection:
        """Get connection by ID.

        Raises:
            NotFoundError: If the connection does not exist
        """
        connection = self.db.get_connection(connection_id)
        if connection is None:
            raise NotFoundError(connection_not_found(connection_id))
        return connection

    def list_connections(self, active_only: bool = False) -> list[BankConnection]:
        """List connections."""
        return self.db.list_connections(active_only=active_only)

    def deactivate(self, connection_id: int) -> BankConnection:
        """Deactivate a connection. History is kept; no new cycles start."""
        self.get_connection(connection_id)
        self.db.set_connection_active(connection_id, False)
        logger.info("Deactivated connection %s", connection_id)
        return self.get_connection(connection_id)

    def get_bank_feed_stats(self, connection_id: int) -> BankFeedStats:
        """Counts and totals of a connection's ingested feed."""
        self.get_connection(connection_id)
        return self.db.get_feed_stats(connection_id)
