"""Data models for bank transactions and captured receipts."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


class MatchStatus(Enum):
    """Review state of a receipt with respect to transaction matching."""

    PENDING = "pending"
    MATCHED = "matched"
    NO_MATCH = "no_match"


class ConfidenceLevel(Enum):
    """Coarse label shown next to a match or duplicate score."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass
class Transaction:
    """
    One bank or card reported movement of money.

    Created by a bank-aggregation import and never changed by the
    matching core; only the user-applied fields at the bottom are
    updated when a receipt match is confirmed.
    """

    # Unique identifier from the import
    id: str

    # Posting date
    date: date

    # Signed amount, positive = outflow
    amount: Decimal

    # Payee name as reported by the source
    merchant: str = ""

    # Free-text memo
    description: str = ""

    # Originating account or institution label
    source: str = ""

    # User-applied fields, copied from a confirmed receipt
    tax_category: Optional[str] = None
    is_tax_deductible: Optional[bool] = None
    receipt_url: Optional[str] = None

    @property
    def absolute_amount(self) -> Decimal:
        """Amount with the sign removed, as receipts store it."""
        return abs(self.amount)


@dataclass
class Receipt:
    """
    One user-captured proof-of-purchase document.

    The ``transaction_id`` is a weak back-reference set once a match is
    confirmed; a receipt links to at most one transaction at a time.
    """

    id: str

    # Purchase date as extracted or entered (None when OCR found none)
    date: Optional[date]

    # Unsigned amount
    amount: Decimal

    merchant: str = ""
    category: Optional[str] = None
    image_url: Optional[str] = None

    # Upload timestamp, distinct from the purchase date
    created_at: Optional[datetime] = None

    # Back-reference to the matched transaction
    transaction_id: Optional[str] = None

    # Deduction fields copied to the transaction on confirmation
    tax_category: Optional[str] = None
    is_deductible: Optional[bool] = None

    # Match review state
    match_status: MatchStatus = MatchStatus.PENDING
    match_confidence: Optional[float] = None
    match_reasons: list[str] = field(default_factory=list)

    @property
    def is_linked(self) -> bool:
        """Check if the receipt is linked to a transaction."""
        return bool(self.transaction_id)
