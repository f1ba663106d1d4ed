"""
Matching engine for transaction/receipt reconciliation.
Selects an assignment strategy from configuration and summarizes runs.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
import logging

from ..config import ReconConfig
from ..models.results import (
    MatchResult,
    ReceiptMatchCandidate,
    ReconciliationSummary,
)
from ..models.transaction import Receipt, Transaction
from ..utils.exceptions import ConfigurationError
from .scoring import ConfidenceScorer
from .strategies import STRATEGIES, MatchingStrategy

logger = logging.getLogger(__name__)


class TransactionMatcher:
    """
    Main engine that pairs bank transactions with receipts.

    Scoring is shared; the assignment strategy (greedy or optimal) is
    chosen by ``matching.strategy`` and can be swapped without touching
    callers.
    """

    def __init__(
        self,
        config: Optional[ReconConfig] = None,
        strategy: Optional[MatchingStrategy] = None,
    ):
        """
        Initialize the matcher.

        Args:
            config: Application configuration (defaults if omitted)
            strategy: Explicit strategy, overriding the configured one
        """
        self.config = config or ReconConfig()
        self.scorer = ConfidenceScorer(self.config.matching)
        self.threshold = self.config.matching.confidence_threshold
        self.strategy = strategy or self._build_strategy(self.config.matching.strategy)

    def _build_strategy(self, name: str) -> MatchingStrategy:
        """
        Build the assignment strategy from its configured name.

        Args:
            name: Strategy name

        Returns:
            Matching strategy instance

        Raises:
            ConfigurationError: If the name is unknown
        """
        strategy_cls = STRATEGIES.get(name)
        if strategy_cls is None:
            raise ConfigurationError(
                f"Unknown matching strategy '{name}', expected one of {sorted(STRATEGIES)}"
            )
        logger.debug(f"Using matching strategy: {name}")
        return strategy_cls()

    def match(
        self,
        transactions: list[Transaction],
        receipts: list[Receipt],
    ) -> MatchResult:
        """
        Pair transactions with receipts.

        Args:
            transactions: Bank transactions
            receipts: Captured receipts

        Returns:
            Matched pairs plus leftovers on each side
        """
        start_time = datetime.now()
        logger.info(
            f"Starting matching: {len(transactions)} transactions, "
            f"{len(receipts)} receipts ({self.strategy.name})"
        )

        result = self.strategy.assign(transactions, receipts, self.scorer, self.threshold)

        elapsed = (datetime.now() - start_time).total_seconds()
        logger.info(
            f"Matching complete in {elapsed:.2f}s: {len(result.matched)} matches, "
            f"{len(result.unmatched_transactions)} missing receipts, "
            f"{len(result.unmatched_receipts)} unmatched receipts"
        )
        return result

    def find_candidates(
        self,
        receipt: Receipt,
        transactions: list[Transaction],
        limit: Optional[int] = None,
        min_confidence: float = 0.0,
    ) -> list[ReceiptMatchCandidate]:
        """
        Rank transactions that could belong to a single receipt.

        Unlike ``match`` this does not apply the acceptance threshold; it
        feeds a review list where the user picks the right transaction.

        Args:
            receipt: Receipt to place
            transactions: Candidate transactions
            limit: Maximum number of candidates (``matching.candidate_limit``
                if omitted)
            min_confidence: Candidates must score strictly above this

        Returns:
            Candidates ordered by confidence, ties in input order
        """
        if limit is None:
            limit = self.config.matching.candidate_limit

        candidates: list[ReceiptMatchCandidate] = []
        for transaction in transactions:
            confidence, reasons = self.scorer.score(transaction, receipt)
            if confidence <= min_confidence:
                continue

            days_diff: Optional[int] = None
            if receipt.date is not None:
                days_diff = abs((transaction.date - receipt.date).days)

            candidates.append(
                ReceiptMatchCandidate(
                    transaction=transaction,
                    confidence=confidence,
                    reasons=reasons,
                    amount_diff=abs(transaction.absolute_amount - receipt.amount),
                    days_diff=days_diff,
                )
            )

        candidates = sorted(candidates, key=lambda c: c.confidence, reverse=True)
        return candidates[:limit]

    def generate_summary(
        self,
        transactions: list[Transaction],
        receipts: list[Receipt],
        result: MatchResult,
        transactions_filename: str,
        receipts_filename: str,
        processing_time: float,
        duplicate_count: int = 0,
    ) -> ReconciliationSummary:
        """
        Generate a summary of a matching run.

        Args:
            transactions: All transactions
            receipts: All receipts
            result: Match result for those inputs
            transactions_filename: Name of the transactions export
            receipts_filename: Name of the receipts export
            processing_time: Time taken in seconds
            duplicate_count: Receipts flagged as possible duplicates

        Returns:
            Reconciliation summary object
        """
        total_transaction_amount = sum(
            (t.absolute_amount for t in transactions), Decimal("0")
        )
        total_receipt_amount = sum((r.amount for r in receipts), Decimal("0"))
        matched_amount = sum(
            (p.transaction.absolute_amount for p in result.matched), Decimal("0")
        )

        confidence_counts: dict[str, int] = {}
        for pair in result.matched:
            level = pair.confidence_level.value
            confidence_counts[level] = confidence_counts.get(level, 0) + 1

        all_dates = [t.date for t in transactions]
        period_start = min(all_dates) if all_dates else datetime.now().date()
        period_end = max(all_dates) if all_dates else datetime.now().date()

        return ReconciliationSummary(
            transactions_filename=transactions_filename,
            receipts_filename=receipts_filename,
            reconciliation_date=datetime.now(),
            period_start=period_start,
            period_end=period_end,
            total_transactions=len(transactions),
            total_receipts=len(receipts),
            matched_count=len(result.matched),
            unmatched_transaction_count=len(result.unmatched_transactions),
            unmatched_receipt_count=len(result.unmatched_receipts),
            duplicate_count=duplicate_count,
            total_transaction_amount=total_transaction_amount,
            total_receipt_amount=total_receipt_amount,
            matched_amount=matched_amount,
            matches_by_confidence=confidence_counts,
            strategy=result.strategy,
            processing_time_seconds=processing_time,
            config_file_used=self.config.config_file_path,
        )
