"""Keyword rules that suggest tax categories for transaction text."""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

from ..config import CategoryConfig


@dataclass(frozen=True)
class CategoryRules:
    """Immutable mapping of category name to lowercase keyword substrings."""

    rules: Mapping[str, frozenset[str]]

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, list[str]]) -> "CategoryRules":
        """Build rules from plain lists, lower-casing every keyword."""
        normalized = {
            category: frozenset(keyword.lower() for keyword in keywords if keyword)
            for category, keywords in mapping.items()
        }
        # dict preserves definition order, which decides suggestion order
        return cls(rules=MappingProxyType(normalized))

    @classmethod
    def from_config(cls, config: CategoryConfig) -> "CategoryRules":
        return cls.from_mapping(config.rules)

    @property
    def categories(self) -> list[str]:
        return list(self.rules)


class CategorySuggester:
    """Suggests up to ``max_suggestions`` categories for a transaction."""

    def __init__(
        self,
        rules: CategoryRules,
        max_suggestions: int = 3,
        rank_by_hits: bool = False,
    ):
        """
        Initialize the suggester.

        Args:
            rules: Category keyword rules
            max_suggestions: Maximum number of categories returned
            rank_by_hits: Order by number of keyword hits before
                definition order
        """
        self.rules = rules
        self.max_suggestions = max_suggestions
        self.rank_by_hits = rank_by_hits

    @classmethod
    def from_config(cls, config: Optional[CategoryConfig] = None) -> "CategorySuggester":
        config = config or CategoryConfig()
        return cls(
            rules=CategoryRules.from_config(config),
            max_suggestions=config.max_suggestions,
            rank_by_hits=config.rank_by_hits,
        )

    def suggest(self, transaction_name: str, merchant_name: str = "") -> list[str]:
        """
        Suggest categories whose keywords occur in the transaction text.

        Args:
            transaction_name: Transaction name or description
            merchant_name: Merchant name

        Returns:
            Matching category names, definition order unless ranking by hits
        """
        text = f"{transaction_name} {merchant_name}".lower()

        hits: list[tuple[str, int]] = []
        for category, keywords in self.rules.rules.items():
            count = sum(1 for keyword in keywords if keyword in text)
            if count:
                hits.append((category, count))

        if self.rank_by_hits:
            hits = sorted(hits, key=lambda item: item[1], reverse=True)

        return [category for category, _ in hits[: self.max_suggestions]]
