"""
Duplicate receipt detection.
Scores an incoming receipt against existing ones with a weighted heuristic.
"""

from decimal import Decimal
from typing import Iterable, Optional
import logging

from ..config import DuplicateConfig
from ..models.results import DuplicateMatch
from ..models.transaction import Receipt
from .similarity import similarity

logger = logging.getLogger(__name__)


class DuplicateDetector:
    """
    Flags existing receipts that probably record the same purchase.

    Each signal (amount, date, merchant, shared transaction link) adds
    points to an accumulator; receipts reaching ``score_threshold`` are
    reported with the reasons that fired.
    """

    def __init__(self, config: Optional[DuplicateConfig] = None):
        """
        Initialize the detector.

        Args:
            config: Duplicate scoring configuration (defaults if omitted)
        """
        self.config = config or DuplicateConfig()
        self._exact_ratio = Decimal(str(self.config.amount_exact_percent)) / 100
        self._similar_ratio = Decimal(str(self.config.amount_similar_percent)) / 100

    def detect(
        self, candidate: Receipt, existing: Iterable[Receipt]
    ) -> list[DuplicateMatch]:
        """
        Find likely duplicates of ``candidate`` among ``existing``.

        Args:
            candidate: Newly captured receipt
            existing: Receipts already on file (may include the candidate)

        Returns:
            Duplicate matches, highest score first; ties keep input order
        """
        duplicates: list[DuplicateMatch] = []

        for receipt in existing:
            if receipt.id == candidate.id:
                continue

            score, reasons = self.score(candidate, receipt)
            if score >= self.config.score_threshold:
                duplicates.append(
                    DuplicateMatch(receipt=receipt, match_score=score, reasons=reasons)
                )

        # sorted() is stable, equal scores stay in encounter order
        duplicates = sorted(duplicates, key=lambda d: d.match_score, reverse=True)

        if duplicates:
            logger.debug(
                f"Receipt {candidate.id}: {len(duplicates)} possible duplicate(s), "
                f"top score {duplicates[0].match_score}"
            )
        return duplicates

    def score(self, candidate: Receipt, other: Receipt) -> tuple[int, list[str]]:
        """
        Accumulate the duplicate score for one pair of receipts.

        Args:
            candidate: Receipt being checked; amount bands are relative to it
            other: Existing receipt

        Returns:
            Tuple of (score, reasons)
        """
        cfg = self.config
        score = 0
        reasons: list[str] = []

        # Amount, relative to the candidate's amount
        if candidate.amount and other.amount:
            amount_diff = abs(candidate.amount - other.amount)
            if amount_diff <= candidate.amount * self._exact_ratio:
                score += cfg.amount_exact_points
                reasons.append("Exact amount match")
            elif amount_diff <= candidate.amount * self._similar_ratio:
                score += cfg.amount_similar_points
                reasons.append("Similar amount")

        if candidate.date is not None and other.date is not None:
            date_diff = abs((candidate.date - other.date).days)
            for band in cfg.date_bands:
                if date_diff <= band.max_days:
                    score += band.points
                    reasons.append(band.reason)
                    break

        if candidate.merchant and other.merchant:
            merchant_similarity = similarity(
                candidate.merchant.lower(), other.merchant.lower()
            )
            if merchant_similarity > cfg.same_merchant_similarity:
                score += cfg.same_merchant_points
                reasons.append("Same merchant")
            elif merchant_similarity > cfg.similar_merchant_similarity:
                score += cfg.similar_merchant_points
                reasons.append("Similar merchant")

        if other.transaction_id and candidate.transaction_id == other.transaction_id:
            score += cfg.linked_transaction_points
            reasons.append("Linked to same transaction")

        return score, reasons

    def scan(self, receipts: list[Receipt]) -> list[tuple[Receipt, list[DuplicateMatch]]]:
        """
        Check every receipt against the rest of the collection.

        Scores are relative to each candidate's amount, so a pair may be
        reported from one side only.

        Args:
            receipts: All receipts to check

        Returns:
            (receipt, duplicates) for receipts with at least one duplicate
        """
        flagged: list[tuple[Receipt, list[DuplicateMatch]]] = []
        for receipt in receipts:
            duplicates = self.detect(receipt, receipts)
            if duplicates:
                flagged.append((receipt, duplicates))

        logger.info(
            f"Duplicate scan: {len(flagged)} of {len(receipts)} receipts flagged"
        )
        return flagged
