"""
Receipt CSV parser.
Converts an export of captured receipts into Receipt records.
"""

from typing import Optional
import logging

import pandas as pd

from ..models.transaction import MatchStatus, Receipt
from ..utils.exceptions import ReceiptParseError
from .base import CSVParser

logger = logging.getLogger(__name__)


class ReceiptParser(CSVParser[Receipt]):
    """Parser for receipt exports."""

    section = "receipts"
    error_class = ReceiptParseError

    def _normalize_row(self, row: pd.Series, idx: int) -> Optional[Receipt]:
        """
        Convert a DataFrame row to a Receipt.

        A missing purchase date is kept as None; a missing or negative
        amount drops the row.

        Args:
            row: Pandas Series representing a row
            idx: Row index

        Returns:
            Receipt or None if the row is invalid
        """
        amount = self._parse_amount(self._cell(row, "amount"))
        if amount is None:
            logger.warning(f"Row {idx}: No valid amount found, skipping")
            return None
        if amount < 0:
            logger.warning(f"Row {idx}: Negative receipt amount {amount}, skipping")
            return None

        raw_date = self._cell(row, "date")
        receipt_date = self._parse_date(raw_date)
        if raw_date and receipt_date is None:
            logger.warning(f"Row {idx}: Unparsable date '{raw_date}', keeping receipt undated")

        transaction_id = self._cell(row, "transaction_id")

        return Receipt(
            id=self._cell(row, "id") or f"RCPT-{idx + 1:05d}",
            date=receipt_date,
            amount=amount,
            merchant=self._cell(row, "merchant") or "",
            category=self._cell(row, "category"),
            image_url=self._cell(row, "image_url"),
            created_at=self._parse_datetime(self._cell(row, "created_at")),
            transaction_id=transaction_id,
            match_status=MatchStatus.MATCHED if transaction_id else MatchStatus.PENDING,
        )
