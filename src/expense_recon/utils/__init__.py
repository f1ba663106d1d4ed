"""Utility modules."""

from .exceptions import (
    ReconciliationError,
    ConfigurationError,
    ParseError,
    TransactionParseError,
    ReceiptParseError,
    RecordNotFoundError,
    MatchConflictError,
    ReportGenerationError,
)
from .logging_config import setup_logging, get_logger

__all__ = [
    "ReconciliationError",
    "ConfigurationError",
    "ParseError",
    "TransactionParseError",
    "ReceiptParseError",
    "RecordNotFoundError",
    "MatchConflictError",
    "ReportGenerationError",
    "setup_logging",
    "get_logger",
]
