"""
Record store interface used by the reconciliation service.

Storage lives outside this package; the service only needs per-user
list/get/save/delete calls. ``InMemoryRecordStore`` keeps everything in
process memory.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..models.transaction import Receipt, Transaction


class RecordStore(ABC):
    """Asynchronous, per-user access to transactions and receipts."""

    @abstractmethod
    async def list_transactions(self, user_id: str) -> list[Transaction]:
        pass

    @abstractmethod
    async def list_receipts(self, user_id: str) -> list[Receipt]:
        pass

    @abstractmethod
    async def get_transaction(self, user_id: str, transaction_id: str) -> Optional[Transaction]:
        pass

    @abstractmethod
    async def get_receipt(self, user_id: str, receipt_id: str) -> Optional[Receipt]:
        pass

    @abstractmethod
    async def save_transaction(self, user_id: str, transaction: Transaction) -> None:
        """Insert or replace a transaction by id."""
        pass

    @abstractmethod
    async def save_receipt(self, user_id: str, receipt: Receipt) -> None:
        """Insert or replace a receipt by id."""
        pass

    @abstractmethod
    async def delete_receipt(self, user_id: str, receipt_id: str) -> bool:
        """Delete a receipt; returns False when it did not exist."""
        pass


class InMemoryRecordStore(RecordStore):
    """Dictionary backed store; listing preserves insertion order."""

    def __init__(self) -> None:
        self._transactions: dict[str, dict[str, Transaction]] = {}
        self._receipts: dict[str, dict[str, Receipt]] = {}

    async def list_transactions(self, user_id: str) -> list[Transaction]:
        return list(self._transactions.get(user_id, {}).values())

    async def list_receipts(self, user_id: str) -> list[Receipt]:
        return list(self._receipts.get(user_id, {}).values())

    async def get_transaction(self, user_id: str, transaction_id: str) -> Optional[Transaction]:
        return self._transactions.get(user_id, {}).get(transaction_id)

    async def get_receipt(self, user_id: str, receipt_id: str) -> Optional[Receipt]:
        return self._receipts.get(user_id, {}).get(receipt_id)

    async def save_transaction(self, user_id: str, transaction: Transaction) -> None:
        self._transactions.setdefault(user_id, {})[transaction.id] = transaction

    async def save_receipt(self, user_id: str, receipt: Receipt) -> None:
        self._receipts.setdefault(user_id, {})[receipt.id] = receipt

    async def delete_receipt(self, user_id: str, receipt_id: str) -> bool:
        return self._receipts.get(user_id, {}).pop(receipt_id, None) is not None
