"""Per-pair confidence scoring for transactions and receipts."""

from decimal import Decimal
from typing import Optional

from ..config import MatchingConfig
from ..models.transaction import Receipt, Transaction


class ConfidenceScorer:
    """
    Additive confidence that a transaction and a receipt are one purchase.

    With default weights the amount, date and merchant signals add up to
    at most 0.5 + 0.3 + 0.2 = 1.0.
    """

    def __init__(self, config: Optional[MatchingConfig] = None):
        """
        Initialize with scoring weights.

        Args:
            config: Matching configuration (defaults if omitted)
        """
        self.config = config or MatchingConfig()
        self._exact_tolerance = Decimal(str(self.config.amount.exact_tolerance))
        self._similar_tolerance = Decimal(str(self.config.amount.similar_tolerance))

    def score(self, transaction: Transaction, receipt: Receipt) -> tuple[float, list[str]]:
        """
        Score one transaction/receipt pair.

        Args:
            transaction: Bank transaction (sign is ignored)
            receipt: Captured receipt

        Returns:
            Tuple of (confidence rounded to 4 places, reasons)
        """
        amount_cfg = self.config.amount
        date_cfg = self.config.date
        merchant_cfg = self.config.merchant

        confidence = 0.0
        reasons: list[str] = []

        amount_diff = abs(transaction.absolute_amount - receipt.amount)
        if amount_diff < self._exact_tolerance:
            confidence += amount_cfg.exact_weight
            reasons.append("Exact amount")
        elif amount_diff < self._similar_tolerance:
            confidence += amount_cfg.similar_weight
            reasons.append("Similar amount")

        if receipt.date is not None:
            days_diff = abs((transaction.date - receipt.date).days)
            if days_diff == 0:
                confidence += date_cfg.same_day_weight
                reasons.append("Same date")
            elif days_diff <= date_cfg.window_days:
                confidence += date_cfg.window_weight
                reasons.append(f"Within {date_cfg.window_days} days")

        transaction_merchant = transaction.merchant.lower()
        receipt_merchant = receipt.merchant.lower()
        if transaction_merchant == receipt_merchant:
            confidence += merchant_cfg.exact_weight
            reasons.append("Exact merchant")
        elif (
            receipt_merchant in transaction_merchant
            or transaction_merchant in receipt_merchant
        ):
            confidence += merchant_cfg.partial_weight
            reasons.append("Similar merchant")

        # Float accumulation must not push a 0.7 sum over a 0.7 threshold
        return round(confidence, 4), reasons
