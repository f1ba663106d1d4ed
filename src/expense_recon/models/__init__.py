"""Data models for transactions, receipts and reconciliation results."""

from .transaction import (
    Transaction,
    Receipt,
    MatchStatus,
    ConfidenceLevel,
)
from .results import (
    MatchedPair,
    DuplicateMatch,
    ReceiptMatchCandidate,
    MatchResult,
    ReconciliationSummary,
)

__all__ = [
    "Transaction",
    "Receipt",
    "MatchStatus",
    "ConfidenceLevel",
    "MatchedPair",
    "DuplicateMatch",
    "ReceiptMatchCandidate",
    "MatchResult",
    "ReconciliationSummary",
]
