"""
Assignment strategies for pairing transactions with receipts.
Each strategy turns per-pair confidences into a one-to-one matching.
"""

from abc import ABC, abstractmethod
from typing import Optional

import numpy as np
from scipy.optimize import linear_sum_assignment

from ..models.results import MatchedPair, MatchResult
from ..models.transaction import Receipt, Transaction
from .scoring import ConfidenceScorer


class MatchingStrategy(ABC):
    """Abstract base class for matching strategies."""

    name: str = "base"

    @abstractmethod
    def assign(
        self,
        transactions: list[Transaction],
        receipts: list[Receipt],
        scorer: ConfidenceScorer,
        threshold: float,
    ) -> MatchResult:
        """
        Pair transactions with receipts.

        Args:
            transactions: Transactions to match, in input order
            receipts: Receipts available for matching
            scorer: Per-pair confidence scorer
            threshold: Confidence a pair must strictly exceed

        Returns:
            Match result; every input appears exactly once across
            matched and unmatched lists
        """
        pass


class GreedyMatchStrategy(MatchingStrategy):
    """
    First-come first-served matching.

    Transactions are visited in input order and each takes its best
    remaining receipt if that clears the threshold. A consumed receipt is
    gone for later transactions even if one of them would fit it better.
    """

    name = "greedy"

    def assign(
        self,
        transactions: list[Transaction],
        receipts: list[Receipt],
        scorer: ConfidenceScorer,
        threshold: float,
    ) -> MatchResult:
        """Match greedily in transaction order."""
        matched: list[MatchedPair] = []
        unmatched_transactions: list[Transaction] = []

        # Indices into ``receipts`` already taken in this run
        consumed: set[int] = set()

        for transaction in transactions:
            best_index: Optional[int] = None
            best_confidence = 0.0
            best_reasons: list[str] = []

            for index, receipt in enumerate(receipts):
                if index in consumed:
                    continue

                confidence, reasons = scorer.score(transaction, receipt)
                # Strict comparison keeps the first of equally good receipts
                if best_index is None or confidence > best_confidence:
                    best_index = index
                    best_confidence = confidence
                    best_reasons = reasons

            if best_index is not None and best_confidence > threshold:
                consumed.add(best_index)
                matched.append(
                    MatchedPair(
                        transaction=transaction,
                        receipt=receipts[best_index],
                        confidence=best_confidence,
                        matched_by=best_reasons,
                    )
                )
            else:
                unmatched_transactions.append(transaction)

        unmatched_receipts = [
            receipt for index, receipt in enumerate(receipts) if index not in consumed
        ]

        return MatchResult(
            matched=matched,
            unmatched_transactions=unmatched_transactions,
            unmatched_receipts=unmatched_receipts,
            strategy=self.name,
        )


class OptimalMatchStrategy(MatchingStrategy):
    """
    Maximum-weight bipartite matching.

    Solves the assignment problem over the full confidence matrix so that
    the total confidence of accepted pairs is maximal. Pairs at or below
    the threshold are zeroed out before solving and never returned.
    """

    name = "optimal"

    def assign(
        self,
        transactions: list[Transaction],
        receipts: list[Receipt],
        scorer: ConfidenceScorer,
        threshold: float,
    ) -> MatchResult:
        """Match by solving the assignment problem."""
        if not transactions or not receipts:
            return MatchResult(
                matched=[],
                unmatched_transactions=list(transactions),
                unmatched_receipts=list(receipts),
                strategy=self.name,
            )

        weights = np.zeros((len(transactions), len(receipts)))
        reasons: dict[tuple[int, int], list[str]] = {}

        for row, transaction in enumerate(transactions):
            for col, receipt in enumerate(receipts):
                confidence, pair_reasons = scorer.score(transaction, receipt)
                if confidence > threshold:
                    weights[row, col] = confidence
                    reasons[(row, col)] = pair_reasons

        rows, cols = linear_sum_assignment(weights, maximize=True)

        # Transaction row -> receipt column, only for pairs above threshold
        assignment = {
            int(row): int(col)
            for row, col in zip(rows, cols)
            if (int(row), int(col)) in reasons
        }

        matched: list[MatchedPair] = []
        unmatched_transactions: list[Transaction] = []
        for row, transaction in enumerate(transactions):
            col = assignment.get(row)
            if col is None:
                unmatched_transactions.append(transaction)
                continue
            matched.append(
                MatchedPair(
                    transaction=transaction,
                    receipt=receipts[col],
                    confidence=float(weights[row, col]),
                    matched_by=reasons[(row, col)],
                )
            )

        used_columns = set(assignment.values())
        unmatched_receipts = [
            receipt for col, receipt in enumerate(receipts) if col not in used_columns
        ]

        return MatchResult(
            matched=matched,
            unmatched_transactions=unmatched_transactions,
            unmatched_receipts=unmatched_receipts,
            strategy=self.name,
        )


STRATEGIES: dict[str, type[MatchingStrategy]] = {
    GreedyMatchStrategy.name: GreedyMatchStrategy,
    OptimalMatchStrategy.name: OptimalMatchStrategy,
}
