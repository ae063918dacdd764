"""Shared domain error messages and error types."""

from enum import Enum


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling. Each subclass carries a
    stable ``code`` used in structured results.
    """

    code = "domain_error"


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""

    code = "validation_error"


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""

    code = "not_found"


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""

    code = "conflict"


class FetchErrorKind(str, Enum):
    """Failure classes reported by a feed fetcher."""

    TRANSIENT = "transient"
    AUTH = "auth"
    MALFORMED = "malformed"


class FetchError(DomainError):
    """A feed fetch failed.

    ``transient`` is retried on the next scheduled tick, ``auth`` deactivates
    the connection, ``malformed`` marks a batch whose bad records are skipped.
    A malformed failure may still carry the records that were readable.
    """

    def __init__(self, kind: FetchErrorKind, message: str, records: list | None = None):
        super().__init__(message)
        self.kind = FetchErrorKind(kind)
        self.records = records or []

    @property
    def code(self) -> str:
        return f"fetch_{self.kind.value}"


class NormalizationError(DomainError):
    """A vendor record has no usable id or amount."""

    code = "normalization_error"


class RateSourceError(DomainError):
    """The upstream rate source could not deliver a rate table."""

    code = "rate_source_error"


class RateUnavailable(DomainError):
    """No cached or fetchable rate exists for a currency pair."""

    code = "rate_unavailable"


class PostingErrorKind(str, Enum):
    CONVERSION_FAILED = "conversionFailed"
    INTEGRITY_VIOLATION = "integrityViolation"


class PostingError(DomainError):
    """A posting unit failed and was rolled back."""

    def __init__(self, kind: PostingErrorKind, message: str):
        super().__init__(message)
        self.kind = PostingErrorKind(kind)

    @property
    def code(self) -> str:
        return f"posting_{self.kind.value}"


class RevaluationError(DomainError):
    """A position could not be priced during revaluation."""

    code = "revaluation_error"

    def __init__(self, message: str, account_id: int | None = None, currency: str | None = None):
        super().__init__(message)
        self.account_id = account_id
        self.currency = currency


class ImmutableRecordError(DomainError):
    """Attempt to modify or delete a write-once ledger record."""

    code = "immutable_record"


def connection_not_found(connection_id: int) -> str:
    """Return message for missing bank connection."""
    return f"Bank connection {connection_id} not found"


def connection_inactive(connection_id: int) -> str:
    """Return message for a deactivated bank connection."""
    return f"Bank connection {connection_id} is inactive"


def raw_transaction_not_found(transaction_id: int) -> str:
    """Return message for missing feed transaction."""
    return f"Feed transaction {transaction_id} not found"


def unsupported_bank(bank_id: str) -> str:
    """Return message for an unknown bank identifier."""
    return f"Unsupported bank '{bank_id}'"


def rate_unavailable(from_currency: str, to_currency: str) -> str:
    """Return message for an unpriceable currency pair."""
    return f"No exchange rate available for {from_currency}->{to_currency}"


def unbalanced_voucher(voucher_number: str, debit, credit) -> str:
    """Return message when a voucher's legs do not balance."""
    return f"Voucher {voucher_number} is unbalanced: debit {debit} != credit {credit}"


def duplicate_voucher(voucher_number: str) -> str:
    """Return message for a voucher number already in use."""
    return f"Voucher number '{voucher_number}' already exists"


def revaluation_superseded(as_of, latest) -> str:
    """Return message for a back-dated revaluation that would post."""
    return (
        f"Cannot post a revaluation as of {as_of.isoformat()}: "
        f"a revaluation as of {latest.isoformat()} is already posted"
    )
