# src/filters/query_classifier.py

"""Keyword-based classification of search queries."""

from src.config.settings import Settings


class QueryClassifier:
    """Classify queries by category value and accessory intent."""

    @staticmethod
    def is_high_value(query: str) -> bool:
        """True when the query names an expensive product category.

        Matching is a plain substring test on the lower-cased query,
        so short keywords such as "ac" and "pc" match inside longer words.
        """
        lowered = query.lower()
        return any(kw in lowered for kw in Settings.HIGH_VALUE_KEYWORDS)

    @staticmethod
    def is_primary(query: str) -> bool:
        """True unless the user is searching for an accessory."""
        lowered = query.lower()
        return not any(
            kw in lowered for kw in Settings.ACCESSORY_KEYWORDS
        )

    @staticmethod
    def looks_like_accessory(title: str) -> bool:
        """Hint passed to the relevance model alongside each title."""
        lowered = title.lower()
        return any(
            kw in lowered for kw in Settings.SCORER_ACCESSORY_HINTS
        )
