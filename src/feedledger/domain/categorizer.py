"""Rule-based categorization of feed transactions."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from feedledger.database.base import Database
from feedledger.domain.entities import CategoryPrediction, UNCATEGORIZED
from feedledger.domain.errors import NotFoundError, raw_transaction_not_found

logger = logging.getLogger(__name__)

FALLBACK_CONFIDENCE = Decimal("0.50")


@dataclass(frozen=True)
class CategoryRule:
    category: str
    keywords: tuple[str, ...]
    confidence: Decimal


# First match wins, so order matters
DEFAULT_RULES: tuple[CategoryRule, ...] = (
    CategoryRule("PAYROLL", ("salary", "payroll", "wages"), Decimal("0.95")),
    CategoryRule("RENT", ("rent", "lease"), Decimal("0.90")),
    CategoryRule("UTILITIES", ("electricity", "power", "utility"), Decimal("0.90")),
    CategoryRule("INTERNET", ("internet", "broadband", "wifi"), Decimal("0.90")),
    CategoryRule("FUEL", ("fuel", "petrol", "diesel", "gas"), Decimal("0.85")),
    CategoryRule("MEALS", ("food", "restaurant", "cafe", "meal"), Decimal("0.80")),
    CategoryRule("OFFICE_SUPPLIES", ("office", "supplies", "stationery"), Decimal("0.85")),
    CategoryRule("SOFTWARE", ("software", "subscription", "saas"), Decimal("0.85")),
    CategoryRule("TRAVEL", ("travel", "flight", "hotel", "taxi"), Decimal("0.85")),
    CategoryRule("INSURANCE", ("insurance",), Decimal("0.90")),
    CategoryRule("TAXES", ("tax", "gst", "tds"), Decimal("0.95")),
    CategoryRule("BANK_CHARGES", ("bank", "charges", "fee"), Decimal("0.90")),
)


class Classifier(ABC):
    """Anything that maps a description to a category and confidence."""

    @abstractmethod
    def classify(self, description: str) -> CategoryPrediction:
        pass


class KeywordClassifier(Classifier):
    """Ordered keyword table, matched as case-insensitive substrings."""

    def __init__(self, rules: tuple[CategoryRule, ...] = DEFAULT_RULES):
        self.rules = rules

    def classify(self, description: str) -> CategoryPrediction:
        text = (description or "").lower()
        for rule in self.rules:
            if any(keyword in text for keyword in rule.keywords):
                return CategoryPrediction(rule.category, rule.confidence)
        return CategoryPrediction(UNCATEGORIZED, FALLBACK_CONFIDENCE)


class CategorizerService:
    """Assigns categories to stored feed transactions."""

    def __init__(self, db: Database, classifier: Optional[Classifier] = None):
        self.db = db
        self.classifier = classifier or KeywordClassifier()

    def categorize(self, transaction_id: int) -> CategoryPrediction:
        """Classify a stored transaction and save the prediction.

        Raises:
            NotFoundError: If the transaction does not exist
        """
        txn = self.db.get_feed_transaction(transaction_id)
        if txn is None:
            raise NotFoundError(raw_transaction_not_found(transaction_id))

        prediction = self.classifier.classify(txn.description)
        self.db.update_feed_transaction_category(
            transaction_id, prediction.category, prediction.confidence
        )
        logger.debug(
            "Categorized feed transaction %s as %s (%s)",
            transaction_id,
            prediction.category,
            prediction.confidence,
        )
        return prediction
