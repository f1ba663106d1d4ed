"""Matching engine, strategies, duplicate detection and category rules."""

from .engine import TransactionMatcher
from .strategies import (
    MatchingStrategy,
    GreedyMatchStrategy,
    OptimalMatchStrategy,
)
from .scoring import ConfidenceScorer
from .similarity import similarity, levenshtein_distance
from .duplicates import DuplicateDetector
from .categories import CategoryRules, CategorySuggester

__all__ = [
    "TransactionMatcher",
    "MatchingStrategy",
    "GreedyMatchStrategy",
    "OptimalMatchStrategy",
    "ConfidenceScorer",
    "similarity",
    "levenshtein_distance",
    "DuplicateDetector",
    "CategoryRules",
    "CategorySuggester",
]
