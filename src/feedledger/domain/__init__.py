"""Domain layer for feedledger.

Services are exported lazily: the database layer imports
``feedledger.domain.entities`` and the services import the database layer,
so nothing here may import a service at package import time.
"""

from importlib import import_module

_EXPORTS = {
    "ConnectionService": "feedledger.domain.connection",
    "TransactionNormalizer": "feedledger.domain.normalizer",
    "IngestionStore": "feedledger.domain.ingestion",
    "CategorizerService": "feedledger.domain.categorizer",
    "KeywordClassifier": "feedledger.domain.categorizer",
    "ExchangeRateCache": "feedledger.domain.rates",
    "CurrencyConverter": "feedledger.domain.converter",
    "LedgerPoster": "feedledger.domain.ledger",
    "RevaluationEngine": "feedledger.domain.revaluation",
    "ReportService": "feedledger.domain.reports",
    "SyncService": "feedledger.domain.sync",
    "SyncScheduler": "feedledger.domain.scheduler",
    "LedgerEngine": "feedledger.domain.engine",
}

__all__ = list(_EXPORTS)


def __getattr__(name):
    if name in _EXPORTS:
        return getattr(import_module(_EXPORTS[name]), name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
