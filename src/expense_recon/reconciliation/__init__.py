"""Orchestration of matching and duplicate detection against stored records."""

from .service import (
    ReconciliationService,
    ReceiptIntakeResult,
    ReconciliationAuditEvent,
)
from .store import RecordStore, InMemoryRecordStore

__all__ = [
    "ReconciliationService",
    "ReceiptIntakeResult",
    "ReconciliationAuditEvent",
    "RecordStore",
    "InMemoryRecordStore",
]
