"""Parsers for transaction and receipt CSV exports."""

from .transaction_parser import TransactionParser
from .receipt_parser import ReceiptParser

__all__ = ["TransactionParser", "ReceiptParser"]
