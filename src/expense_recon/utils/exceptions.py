"""Custom exceptions for the expense reconciliation package."""


class ReconciliationError(Exception):
    """Base exception for reconciliation errors."""

    pass


class ConfigurationError(ReconciliationError):
    """Error in configuration."""

    pass


class ParseError(ReconciliationError):
    """Error reading an input export."""

    pass


class TransactionParseError(ParseError):
    """Error parsing a transactions CSV export."""

    pass


class ReceiptParseError(ParseError):
    """Error parsing a receipts CSV export."""

    pass


class RecordNotFoundError(ReconciliationError):
    """A transaction or receipt does not exist for the user."""

    pass


class MatchConflictError(ReconciliationError):
    """Receipt is already linked to a different transaction."""

    pass


class ReportGenerationError(ReconciliationError):
    """Error generating Excel report."""

    pass
