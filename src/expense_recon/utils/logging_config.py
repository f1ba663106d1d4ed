"""Logging setup for the package logger and the reconciliation audit trail."""

import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = "expense_recon"
AUDIT_LOGGER_NAME = f"{ROOT_LOGGER_NAME}.audit"

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"

# Attributes set through ``extra=`` by log_reconciliation_event
AUDIT_FIELDS = ("event", "user_id", "receipt_id", "actor", "timestamp", "details")


class AuditFormatter(logging.Formatter):
    """Renders an audit record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {name: getattr(record, name, None) for name in AUDIT_FIELDS}
        entry["message"] = record.getMessage()
        return json.dumps(entry, default=str)


def _rotating_handler(path: Path, formatter: logging.Formatter) -> RotatingFileHandler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        path,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    log_format: Optional[str] = None,
    audit_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Configure the package logger.

    Console output uses ``log_format``; the optional log file gets a more
    detailed format. Audit events additionally go to ``audit_file`` as
    JSON lines when one is given.

    Args:
        level: Logging level (e.g., logging.DEBUG, logging.INFO)
        log_file: Optional path to log file
        log_format: Optional custom console format string
        audit_file: Optional path for the JSON-lines audit trail

    Returns:
        Configured package logger
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    # Reconfiguring replaces earlier handlers instead of stacking them
    logger.handlers = []

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(log_format or DEFAULT_FORMAT))
    logger.addHandler(console_handler)

    if log_file:
        logger.addHandler(_rotating_handler(log_file, logging.Formatter(FILE_FORMAT)))

    audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
    audit_logger.handlers = []
    if audit_file:
        # Audit events are INFO; keep them even when the console is quieter
        audit_logger.setLevel(logging.INFO)
        audit_logger.addHandler(_rotating_handler(audit_file, AuditFormatter()))
    else:
        audit_logger.setLevel(logging.NOTSET)

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger nested under the package logger.

    Args:
        name: Short component name, e.g. ``"audit"``

    Returns:
        Logger instance
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
