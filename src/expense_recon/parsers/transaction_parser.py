"""
Bank transaction CSV parser.
Converts an aggregator export into Transaction records.
"""

from typing import Optional
import logging

import pandas as pd

from ..models.transaction import Transaction
from ..utils.exceptions import TransactionParseError
from .base import CSVParser

logger = logging.getLogger(__name__)


class TransactionParser(CSVParser[Transaction]):
    """Parser for bank/card transaction exports."""

    section = "transactions"
    error_class = TransactionParseError

    def _normalize_row(self, row: pd.Series, idx: int) -> Optional[Transaction]:
        """
        Convert a DataFrame row to a Transaction.

        Args:
            row: Pandas Series representing a row
            idx: Row index

        Returns:
            Transaction or None if the row has no usable date or amount
        """
        txn_date = self._parse_date(self._cell(row, "date"))
        if not txn_date:
            logger.warning(f"Row {idx}: Invalid date, skipping")
            return None

        amount = self._parse_amount(self._cell(row, "amount"))
        if amount is None:
            logger.warning(f"Row {idx}: No valid amount found, skipping")
            return None

        return Transaction(
            id=self._cell(row, "id") or f"TXN-{idx + 1:05d}",
            date=txn_date,
            amount=amount,
            merchant=self._cell(row, "merchant") or "",
            description=self._cell(row, "description") or "",
            source=self._cell(row, "source") or "",
        )
