"""
Reconciliation Service

Sequences duplicate detection, matching and category suggestions against
a user's stored records:
- New receipt intake (duplicate check, then single-receipt matching)
- Re-matching all open records
- Confirming, rejecting and undoing matches
- Resolving duplicate receipts
- Audit logging

Runs for the same user are serialized; runs for different users proceed
concurrently.
"""

import asyncio
import weakref
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Optional
import logging

from ..config import ReconConfig
from ..matching.categories import CategorySuggester
from ..matching.duplicates import DuplicateDetector
from ..matching.engine import TransactionMatcher
from ..models.results import (
    DuplicateMatch,
    MatchedPair,
    MatchResult,
    ReceiptMatchCandidate,
)
from ..models.transaction import MatchStatus, Receipt, Transaction
from ..utils.exceptions import MatchConflictError, RecordNotFoundError
from ..utils.logging_config import get_logger
from .store import RecordStore

logger = logging.getLogger(__name__)
audit_logger = get_logger("audit")


class ReconciliationAuditEvent:
    """Audit event types for reconciliation operations."""

    RECEIPT_RECEIVED = "reconciliation.receipt_received"
    DUPLICATES_FOUND = "reconciliation.duplicates_found"
    DUPLICATE_DELETED = "reconciliation.duplicate_deleted"
    DUPLICATES_KEPT = "reconciliation.duplicates_kept"
    RUN_COMPLETED = "reconciliation.run_completed"
    MATCH_CONFIRMED = "reconciliation.match_confirmed"
    MATCH_REJECTED = "reconciliation.match_rejected"
    MATCH_REMOVED = "reconciliation.match_removed"


def log_reconciliation_event(
    event_type: str,
    user_id: str,
    details: dict[str, Any],
    receipt_id: Optional[str] = None,
    actor: str = "system",
) -> None:
    """Log reconciliation event for audit trail."""
    log_entry = {
        "event": event_type,
        "user_id": user_id,
        "receipt_id": receipt_id,
        "details": details,
        "actor": actor,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    audit_logger.info(f"Reconciliation event: {event_type}", extra=log_entry)


@dataclass
class ReceiptIntakeResult:
    """Outcome of processing one receipt."""

    receipt: Receipt
    duplicates: list[DuplicateMatch] = field(default_factory=list)
    proposed_match: Optional[MatchedPair] = None
    candidates: list[ReceiptMatchCandidate] = field(default_factory=list)
    confirmed: bool = False

    @property
    def has_duplicates(self) -> bool:
        return bool(self.duplicates)


class ReconciliationService:
    """
    Service for reconciling a user's receipts with bank transactions.

    All storage goes through a ``RecordStore``; matching, duplicate
    detection and category suggestion are delegated to the pure engines.
    """

    def __init__(
        self,
        store: RecordStore,
        config: Optional[ReconConfig] = None,
        matcher: Optional[TransactionMatcher] = None,
        detector: Optional[DuplicateDetector] = None,
        suggester: Optional[CategorySuggester] = None,
    ):
        self.store = store
        self.config = config or ReconConfig()
        self.matcher = matcher or TransactionMatcher(self.config)
        self.detector = detector or DuplicateDetector(self.config.duplicates)
        self.suggester = suggester or CategorySuggester.from_config(self.config.categories)
        # Entries vanish once no coroutine holds or waits on the lock
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        return lock

    # ==================== RECEIPT INTAKE ====================

    async def process_new_receipt(self, user_id: str, receipt: Receipt) -> ReceiptIntakeResult:
        """
        Store a newly captured receipt and reconcile it.

        Duplicates are checked first; when any are found they are returned
        for the user to resolve and matching is skipped.

        Args:
            user_id: Owner of the receipt
            receipt: Receipt produced by the ingestion pipeline

        Returns:
            Intake result with duplicates or a proposed match
        """
        async with self._lock_for(user_id):
            await self.store.save_receipt(user_id, receipt)
            log_reconciliation_event(
                ReconciliationAuditEvent.RECEIPT_RECEIVED,
                user_id,
                {"amount": str(receipt.amount), "merchant": receipt.merchant},
                receipt_id=receipt.id,
            )

            existing = [
                r for r in await self.store.list_receipts(user_id) if r.id != receipt.id
            ]
            duplicates = self.detector.detect(receipt, existing)

            if duplicates:
                log_reconciliation_event(
                    ReconciliationAuditEvent.DUPLICATES_FOUND,
                    user_id,
                    {
                        "duplicate_ids": [d.receipt_id for d in duplicates],
                        "top_score": duplicates[0].match_score,
                    },
                    receipt_id=receipt.id,
                )
                return ReceiptIntakeResult(receipt=receipt, duplicates=duplicates)

            return await self._match_single_receipt(user_id, receipt)

    async def match_receipt(self, user_id: str, receipt_id: str) -> ReceiptIntakeResult:
        """
        Attempt to match one stored receipt against open transactions.

        Args:
            user_id: Owner of the receipt
            receipt_id: Receipt to match

        Returns:
            Intake result with the proposed match and ranked candidates
        """
        async with self._lock_for(user_id):
            receipt = await self._require_receipt(user_id, receipt_id)
            return await self._match_single_receipt(user_id, receipt)

    async def _match_single_receipt(
        self, user_id: str, receipt: Receipt
    ) -> ReceiptIntakeResult:
        open_transactions = await self._open_transactions(user_id)

        # The matcher works on lists in both directions; a single receipt
        # against many transactions yields at most one pair.
        result = self.matcher.match(open_transactions, [receipt])
        candidates = self.matcher.find_candidates(receipt, open_transactions)

        proposed = result.matched[0] if result.matched else None
        intake = ReceiptIntakeResult(
            receipt=receipt, proposed_match=proposed, candidates=candidates
        )

        if proposed and self.config.reconciliation.auto_confirm:
            intake.receipt = await self._confirm(
                user_id,
                receipt,
                proposed.transaction,
                proposed.confidence,
                proposed.matched_by,
                actor="auto",
            )
            intake.confirmed = True

        return intake

    # ==================== BATCH MATCHING ====================

    async def rematch_all(
        self, user_id: str, persist: bool = False, open_only: bool = False
    ) -> MatchResult:
        """
        Run the matcher fresh over a user's transactions and receipts.

        By default every stored record takes part. With ``open_only`` the
        run is limited to transactions without a linked receipt and
        receipts that are neither linked nor marked as having no match.

        When persisting, a pair that contradicts an existing link or pairs a
        receipt the user rejected is left unsaved; confirmed links are only
        changed through ``unmatch`` and rejections through ``confirm_match``.

        Args:
            user_id: User whose records are reconciled
            persist: Confirm every proposed pair in storage
            open_only: Skip records already linked or rejected

        Returns:
            Match result of the run
        """
        async with self._lock_for(user_id):
            if open_only:
                transactions = await self._open_transactions(user_id)
                receipts = [
                    r
                    for r in await self.store.list_receipts(user_id)
                    if not r.is_linked and r.match_status != MatchStatus.NO_MATCH
                ]
            else:
                transactions = await self.store.list_transactions(user_id)
                receipts = await self.store.list_receipts(user_id)

            result = self.matcher.match(transactions, receipts)

            persisted = 0
            if persist:
                for pair in result.matched:
                    if pair.receipt.match_status == MatchStatus.NO_MATCH:
                        logger.info(
                            f"Not persisting proposed pair: receipt {pair.receipt.id} "
                            f"was rejected by the user"
                        )
                        continue
                    try:
                        pair.receipt = await self._confirm(
                            user_id,
                            pair.receipt,
                            pair.transaction,
                            pair.confidence,
                            pair.matched_by,
                            actor="auto",
                        )
                    except MatchConflictError as e:
                        logger.warning(f"Not persisting proposed pair: {e}")
                        continue
                    persisted += 1

            log_reconciliation_event(
                ReconciliationAuditEvent.RUN_COMPLETED,
                user_id,
                {
                    "strategy": result.strategy,
                    "matched": len(result.matched),
                    "unmatched_transactions": len(result.unmatched_transactions),
                    "unmatched_receipts": len(result.unmatched_receipts),
                    "open_only": open_only,
                    "persisted": persisted,
                },
            )
            return result

    # ==================== MANUAL ACTIONS ====================

    async def confirm_match(
        self,
        user_id: str,
        receipt_id: str,
        transaction_id: str,
        confidence: Optional[float] = None,
        reasons: Optional[list[str]] = None,
    ) -> Receipt:
        """
        Persist a receipt/transaction link chosen or accepted by the user.

        Args:
            user_id: Owner of both records
            receipt_id: Receipt to link
            transaction_id: Transaction to link
            confidence: Confidence to record (scored now if omitted)
            reasons: Match reasons to record (scored now if omitted)

        Returns:
            Updated receipt

        Raises:
            RecordNotFoundError: If either record is missing
            MatchConflictError: If either side is linked elsewhere
        """
        async with self._lock_for(user_id):
            receipt = await self._require_receipt(user_id, receipt_id)
            transaction = await self._require_transaction(user_id, transaction_id)

            if confidence is None or reasons is None:
                scored_confidence, scored_reasons = self.matcher.scorer.score(
                    transaction, receipt
                )
                confidence = scored_confidence if confidence is None else confidence
                reasons = scored_reasons if reasons is None else reasons

            return await self._confirm(
                user_id, receipt, transaction, confidence, reasons, actor="user"
            )

    async def _confirm(
        self,
        user_id: str,
        receipt: Receipt,
        transaction: Transaction,
        confidence: float,
        reasons: list[str],
        actor: str,
    ) -> Receipt:
        if receipt.transaction_id and receipt.transaction_id != transaction.id:
            raise MatchConflictError(
                f"Receipt {receipt.id} is already linked to transaction "
                f"{receipt.transaction_id}"
            )

        for other in await self.store.list_receipts(user_id):
            if other.id != receipt.id and other.transaction_id == transaction.id:
                raise MatchConflictError(
                    f"Transaction {transaction.id} is already linked to receipt {other.id}"
                )

        linked_receipt = replace(
            receipt,
            transaction_id=transaction.id,
            match_status=MatchStatus.MATCHED,
            match_confidence=confidence,
            match_reasons=list(reasons),
        )
        updated_transaction = replace(
            transaction,
            receipt_url=receipt.image_url,
            tax_category=receipt.tax_category or receipt.category or transaction.tax_category,
            is_tax_deductible=(
                receipt.is_deductible
                if receipt.is_deductible is not None
                else transaction.is_tax_deductible
            ),
        )

        await self.store.save_receipt(user_id, linked_receipt)
        await self.store.save_transaction(user_id, updated_transaction)

        log_reconciliation_event(
            ReconciliationAuditEvent.MATCH_CONFIRMED,
            user_id,
            {
                "transaction_id": transaction.id,
                "confidence": confidence,
                "reasons": list(reasons),
            },
            receipt_id=receipt.id,
            actor=actor,
        )
        return linked_receipt

    async def reject_match(self, user_id: str, receipt_id: str) -> Receipt:
        """
        Mark a receipt as having no matching transaction.

        Args:
            user_id: Owner of the receipt
            receipt_id: Receipt the user rejected matches for

        Returns:
            Updated receipt
        """
        async with self._lock_for(user_id):
            receipt = await self._require_receipt(user_id, receipt_id)
            rejected = replace(receipt, match_status=MatchStatus.NO_MATCH)
            await self.store.save_receipt(user_id, rejected)

            log_reconciliation_event(
                ReconciliationAuditEvent.MATCH_REJECTED,
                user_id,
                {},
                receipt_id=receipt_id,
                actor="user",
            )
            return rejected

    async def unmatch(self, user_id: str, receipt_id: str) -> Receipt:
        """
        Undo a confirmed link; both records become open again.

        Unlinking a receipt that is not linked is a no-op.

        Args:
            user_id: Owner of the receipt
            receipt_id: Linked receipt

        Returns:
            Updated receipt
        """
        async with self._lock_for(user_id):
            receipt = await self._require_receipt(user_id, receipt_id)
            if not receipt.is_linked:
                return receipt

            transaction_id = receipt.transaction_id
            unlinked = replace(
                receipt,
                transaction_id=None,
                match_status=MatchStatus.PENDING,
                match_confidence=None,
                match_reasons=[],
            )
            await self.store.save_receipt(user_id, unlinked)

            transaction = await self.store.get_transaction(user_id, transaction_id)
            if transaction is not None:
                await self.store.save_transaction(
                    user_id, _strip_receipt_fields(transaction, receipt)
                )
            else:
                logger.warning(
                    f"Receipt {receipt_id} referenced missing transaction {transaction_id}"
                )

            log_reconciliation_event(
                ReconciliationAuditEvent.MATCH_REMOVED,
                user_id,
                {"transaction_id": transaction_id},
                receipt_id=receipt_id,
                actor="user",
            )
            return unlinked

    # ==================== DUPLICATE RESOLUTION ====================

    async def delete_duplicate(self, user_id: str, receipt_id: str) -> None:
        """
        Delete a receipt the user identified as a duplicate.

        Raises:
            RecordNotFoundError: If the receipt does not exist
        """
        async with self._lock_for(user_id):
            deleted = await self.store.delete_receipt(user_id, receipt_id)
            if not deleted:
                raise RecordNotFoundError(f"Receipt {receipt_id} not found")

            log_reconciliation_event(
                ReconciliationAuditEvent.DUPLICATE_DELETED,
                user_id,
                {},
                receipt_id=receipt_id,
                actor="user",
            )

    async def keep_both(
        self, user_id: str, receipt_id: str, duplicate_ids: list[str]
    ) -> ReceiptIntakeResult:
        """
        Keep a receipt despite its suspected duplicates and continue to
        matching.

        Args:
            user_id: Owner of the receipts
            receipt_id: Receipt that was flagged
            duplicate_ids: Suspected duplicates the user chose to keep

        Returns:
            Intake result from matching the kept receipt
        """
        async with self._lock_for(user_id):
            receipt = await self._require_receipt(user_id, receipt_id)
            log_reconciliation_event(
                ReconciliationAuditEvent.DUPLICATES_KEPT,
                user_id,
                {"duplicate_ids": list(duplicate_ids)},
                receipt_id=receipt_id,
                actor="user",
            )
            return await self._match_single_receipt(user_id, receipt)

    # ==================== CATEGORIES ====================

    def suggest_categories(self, transaction: Transaction) -> list[str]:
        """Suggest tax categories from a transaction's description and merchant."""
        return self.suggester.suggest(transaction.description, transaction.merchant)

    # ==================== HELPERS ====================

    async def _open_transactions(self, user_id: str) -> list[Transaction]:
        linked_ids = {
            r.transaction_id for r in await self.store.list_receipts(user_id) if r.is_linked
        }
        return [
            t for t in await self.store.list_transactions(user_id) if t.id not in linked_ids
        ]

    async def _require_receipt(self, user_id: str, receipt_id: str) -> Receipt:
        receipt = await self.store.get_receipt(user_id, receipt_id)
        if receipt is None:
            raise RecordNotFoundError(f"Receipt {receipt_id} not found")
        return receipt

    async def _require_transaction(self, user_id: str, transaction_id: str) -> Transaction:
        transaction = await self.store.get_transaction(user_id, transaction_id)
        if transaction is None:
            raise RecordNotFoundError(f"Transaction {transaction_id} not found")
        return transaction


def _strip_receipt_fields(transaction: Transaction, receipt: Receipt) -> Transaction:
    """Undo what confirming ``receipt`` copied onto ``transaction``.

    Values the user set on the transaction itself are left alone.
    """
    changes: dict[str, Any] = {"receipt_url": None}
    copied_category = receipt.tax_category or receipt.category
    if copied_category and transaction.tax_category == copied_category:
        changes["tax_category"] = None
    if (
        receipt.is_deductible is not None
        and transaction.is_tax_deductible == receipt.is_deductible
    ):
        changes["is_tax_deductible"] = None
    return replace(transaction, **changes)
