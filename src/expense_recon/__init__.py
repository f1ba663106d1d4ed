"""Reconciliation of bank transactions with captured receipts."""

__version__ = "0.1.0"

from .config import ReconConfig, load_config
from .matching import (
    CategorySuggester,
    DuplicateDetector,
    TransactionMatcher,
    similarity,
)
from .models import (
    DuplicateMatch,
    MatchedPair,
    MatchResult,
    Receipt,
    Transaction,
)

__all__ = [
    "__version__",
    "ReconConfig",
    "load_config",
    "CategorySuggester",
    "DuplicateDetector",
    "TransactionMatcher",
    "similarity",
    "DuplicateMatch",
    "MatchedPair",
    "MatchResult",
    "Receipt",
    "Transaction",
]
