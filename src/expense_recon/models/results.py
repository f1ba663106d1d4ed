"""Result models produced by matching and duplicate detection."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from .transaction import ConfidenceLevel, Receipt, Transaction


@dataclass
class MatchedPair:
    """A transaction and receipt believed to be the same purchase."""

    transaction: Transaction
    receipt: Receipt

    # 0.0 to 1.0
    confidence: float
    matched_by: list[str] = field(default_factory=list)

    # Timestamp for audit
    matched_at: datetime = field(default_factory=datetime.now)

    @property
    def confidence_level(self) -> ConfidenceLevel:
        if self.confidence >= 0.9:
            return ConfidenceLevel.HIGH
        if self.confidence >= 0.7:
            return ConfidenceLevel.MEDIUM
        return ConfidenceLevel.LOW

    @property
    def amount_variance(self) -> Decimal:
        """Difference between the transaction and receipt amounts."""
        return self.transaction.absolute_amount - self.receipt.amount

    @property
    def date_variance_days(self) -> Optional[int]:
        if self.receipt.date is None:
            return None
        return abs((self.transaction.date - self.receipt.date).days)


@dataclass
class DuplicateMatch:
    """An existing receipt that probably records the same purchase."""

    receipt: Receipt

    # Unbounded accumulator, practically 0-100
    match_score: int
    reasons: list[str] = field(default_factory=list)

    @property
    def receipt_id(self) -> str:
        return self.receipt.id

    @property
    def confidence_level(self) -> ConfidenceLevel:
        if self.match_score >= 80:
            return ConfidenceLevel.HIGH
        if self.match_score >= 60:
            return ConfidenceLevel.MEDIUM
        return ConfidenceLevel.LOW


@dataclass
class ReceiptMatchCandidate:
    """A ranked transaction candidate for a single receipt."""

    transaction: Transaction
    confidence: float
    reasons: list[str]
    amount_diff: Decimal
    days_diff: Optional[int]


@dataclass
class MatchResult:
    """Outcome of one matching run."""

    matched: list[MatchedPair] = field(default_factory=list)
    unmatched_transactions: list[Transaction] = field(default_factory=list)
    unmatched_receipts: list[Receipt] = field(default_factory=list)
    strategy: str = "greedy"

    @property
    def is_empty(self) -> bool:
        return not (
            self.matched or self.unmatched_transactions or self.unmatched_receipts
        )


@dataclass
class ReconciliationSummary:
    """Summary of a reconciliation run."""

    # File information
    transactions_filename: str
    receipts_filename: str
    reconciliation_date: datetime
    period_start: date
    period_end: date

    # Record counts
    total_transactions: int
    total_receipts: int

    # Match results
    matched_count: int
    unmatched_transaction_count: int
    unmatched_receipt_count: int
    duplicate_count: int

    # Amount totals
    total_transaction_amount: Decimal
    total_receipt_amount: Decimal
    matched_amount: Decimal

    # high/medium/low breakdown of matched pairs
    matches_by_confidence: dict[str, int] = field(default_factory=dict)

    # Processing metadata
    strategy: str = "greedy"
    processing_time_seconds: float = 0.0
    config_file_used: Optional[str] = None

    @property
    def transaction_match_rate(self) -> float:
        """Percentage of transactions with a receipt."""
        if self.total_transactions == 0:
            return 0.0
        return (self.matched_count / self.total_transactions) * 100

    @property
    def receipt_match_rate(self) -> float:
        """Percentage of receipts linked to a transaction."""
        if self.total_receipts == 0:
            return 0.0
        return (self.matched_count / self.total_receipts) * 100

    @property
    def unreceipted_amount(self) -> Decimal:
        """Transaction spend with no supporting receipt."""
        return self.total_transaction_amount - self.matched_amount
