"""Tests for the reconciliation service and record store."""

import asyncio
import gc
import logging

import pytest

from expense_recon.config import ReconConfig
from expense_recon.models import MatchStatus
from expense_recon.reconciliation import (
    InMemoryRecordStore,
    ReconciliationAuditEvent,
    ReconciliationService,
)
from expense_recon.utils.exceptions import MatchConflictError, RecordNotFoundError

from conftest import make_receipt, make_transaction

USER = "user-1"


async def _seed(store, transactions=(), receipts=(), user_id=USER) -> None:
    for transaction in transactions:
        await store.save_transaction(user_id, transaction)
    for receipt in receipts:
        await store.save_receipt(user_id, receipt)


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def service(store) -> ReconciliationService:
    return ReconciliationService(store)


class TestInMemoryRecordStore:
    """Tests for the dictionary backed store."""

    @pytest.mark.asyncio
    async def test_save_and_get(self, store, sample_transactions, sample_receipts) -> None:
        await _seed(store, sample_transactions, sample_receipts)

        assert await store.get_transaction(USER, "2") is sample_transactions[1]
        assert await store.get_receipt(USER, "r3") is sample_receipts[2]
        assert await store.get_receipt(USER, "missing") is None

    @pytest.mark.asyncio
    async def test_listing_keeps_insertion_order(self, store, sample_receipts) -> None:
        await _seed(store, receipts=reversed(sample_receipts))

        assert [r.id for r in await store.list_receipts(USER)] == ["r3", "r2", "r1"]

    @pytest.mark.asyncio
    async def test_save_replaces_by_id(self, store) -> None:
        await store.save_receipt(USER, make_receipt("r1", "10.00", None, "A"))
        await store.save_receipt(USER, make_receipt("r1", "20.00", None, "B"))

        receipts = await store.list_receipts(USER)

        assert len(receipts) == 1
        assert receipts[0].merchant == "B"

    @pytest.mark.asyncio
    async def test_delete(self, store, sample_receipts) -> None:
        await _seed(store, receipts=sample_receipts)

        assert await store.delete_receipt(USER, "r1") is True
        assert await store.delete_receipt(USER, "r1") is False
        assert await store.get_receipt(USER, "r1") is None

    @pytest.mark.asyncio
    async def test_users_are_isolated(self, store, sample_receipts) -> None:
        await _seed(store, receipts=sample_receipts)

        assert await store.list_receipts("someone-else") == []
        assert await store.delete_receipt("someone-else", "r1") is False


class TestProcessNewReceipt:
    """Tests for receipt intake."""

    @pytest.mark.asyncio
    async def test_proposes_match(self, service, store, sample_transactions) -> None:
        await _seed(store, sample_transactions)
        receipt = make_receipt("r1", "45.99", "2024-11-01", "Office Depot")

        intake = await service.process_new_receipt(USER, receipt)

        assert not intake.has_duplicates
        assert intake.proposed_match is not None
        assert intake.proposed_match.transaction.id == "1"
        assert intake.proposed_match.confidence == 1.0
        assert intake.candidates[0].transaction.id == "1"
        assert intake.confirmed is False

        stored = await store.get_receipt(USER, "r1")
        assert stored is not None
        assert stored.transaction_id is None
        assert stored.match_status == MatchStatus.PENDING

    @pytest.mark.asyncio
    async def test_no_match(self, service, store, sample_transactions) -> None:
        await _seed(store, sample_transactions)
        receipt = make_receipt("r9", "12.00", "2024-12-20", "Kiosk")

        intake = await service.process_new_receipt(USER, receipt)

        assert intake.proposed_match is None
        assert intake.candidates == []

    @pytest.mark.asyncio
    async def test_duplicates_stop_matching(
        self, service, store, sample_transactions, sample_receipts
    ) -> None:
        await _seed(store, sample_transactions, sample_receipts)
        reupload = make_receipt("r1-again", "45.99", "2024-11-01", "Office Depot")

        intake = await service.process_new_receipt(USER, reupload)

        assert intake.has_duplicates
        assert [d.receipt_id for d in intake.duplicates] == ["r1"]
        assert intake.duplicates[0].match_score == 90
        assert intake.proposed_match is None
        assert await store.get_receipt(USER, "r1-again") is not None

    @pytest.mark.asyncio
    async def test_auto_confirm(self, store, sample_transactions) -> None:
        config = ReconConfig()
        config.reconciliation.auto_confirm = True
        service = ReconciliationService(store, config)
        await _seed(store, sample_transactions)
        receipt = make_receipt(
            "r1",
            "45.99",
            "2024-11-01",
            "Office Depot",
            category="Office Supplies",
            image_url="https://img/r1.jpg",
        )

        intake = await service.process_new_receipt(USER, receipt)

        assert intake.confirmed is True
        assert intake.receipt.transaction_id == "1"
        stored_receipt = await store.get_receipt(USER, "r1")
        assert stored_receipt.match_status == MatchStatus.MATCHED
        assert stored_receipt.match_confidence == 1.0
        transaction = await store.get_transaction(USER, "1")
        assert transaction.receipt_url == "https://img/r1.jpg"
        assert transaction.tax_category == "Office Supplies"

    @pytest.mark.asyncio
    async def test_linked_transactions_not_offered(
        self, service, store, sample_transactions
    ) -> None:
        linked = make_receipt("r1", "45.99", "2024-11-01", "Office Depot", transaction_id="1")
        await _seed(store, sample_transactions, [linked])
        receipt = make_receipt("r5", "45.99", "2024-11-01", "Office Depot")
        await store.save_receipt(USER, receipt)

        intake = await service.match_receipt(USER, "r5")

        assert intake.proposed_match is None
        assert "1" not in [c.transaction.id for c in intake.candidates]

    @pytest.mark.asyncio
    async def test_same_user_intake_is_serialized(self, service, store) -> None:
        first = make_receipt("a", "45.99", "2024-11-01", "Office Depot")
        second = make_receipt("b", "45.99", "2024-11-01", "Office Depot")

        results = await asyncio.gather(
            service.process_new_receipt(USER, first),
            service.process_new_receipt(USER, second),
        )

        assert [r.has_duplicates for r in results] == [False, True]
        assert results[1].duplicates[0].receipt_id == "a"

    @pytest.mark.asyncio
    async def test_user_locks_are_released(self, service, store) -> None:
        for n in range(5):
            await service.process_new_receipt(
                f"user-{n}", make_receipt("a", "45.99", "2024-11-01", "Office Depot")
            )

        gc.collect()

        assert len(service._locks) == 0

    @pytest.mark.asyncio
    async def test_other_users_receipts_are_not_duplicates(self, service, store) -> None:
        await store.save_receipt("user-2", make_receipt("a", "45.99", "2024-11-01", "Office Depot"))

        intake = await service.process_new_receipt(
            USER, make_receipt("b", "45.99", "2024-11-01", "Office Depot")
        )

        assert not intake.has_duplicates

    @pytest.mark.asyncio
    async def test_audit_events(self, service, store, sample_transactions, caplog) -> None:
        await _seed(store, sample_transactions)

        with caplog.at_level(logging.INFO, logger="expense_recon.audit"):
            await service.process_new_receipt(
                USER, make_receipt("r1", "45.99", "2024-11-01", "Office Depot")
            )

        events = [r for r in caplog.records if r.name == "expense_recon.audit"]
        assert [e.event for e in events] == [ReconciliationAuditEvent.RECEIPT_RECEIVED]
        assert events[0].user_id == USER
        assert events[0].receipt_id == "r1"


class TestRematchAll:
    """Tests for batch matching."""

    @pytest.mark.asyncio
    async def test_preview_does_not_persist(
        self, service, store, sample_transactions, sample_receipts
    ) -> None:
        await _seed(store, sample_transactions, sample_receipts)

        result = await service.rematch_all(USER)

        assert [(p.transaction.id, p.receipt.id) for p in result.matched] == [
            ("1", "r1"),
            ("2", "r2"),
        ]
        assert all(not r.is_linked for r in await store.list_receipts(USER))

    @pytest.mark.asyncio
    async def test_persist_then_rerun(
        self, service, store, sample_transactions, sample_receipts
    ) -> None:
        await _seed(store, sample_transactions, sample_receipts)

        first = await service.rematch_all(USER, persist=True)
        full = await service.rematch_all(USER)
        open_only = await service.rematch_all(USER, open_only=True)

        assert all(p.receipt.transaction_id == p.transaction.id for p in first.matched)
        assert (await store.get_receipt(USER, "r2")).transaction_id == "2"
        assert [(p.transaction.id, p.receipt.id) for p in full.matched] == [
            ("1", "r1"),
            ("2", "r2"),
        ]
        assert open_only.matched == []
        assert [t.id for t in open_only.unmatched_transactions] == ["3", "4"]
        assert [r.id for r in open_only.unmatched_receipts] == ["r3"]

    @pytest.mark.asyncio
    async def test_persist_keeps_user_links(
        self, service, store, sample_transactions, sample_receipts
    ) -> None:
        await _seed(store, sample_transactions, sample_receipts)
        await service.confirm_match(USER, "r1", "3")

        await service.rematch_all(USER, persist=True)

        assert (await store.get_receipt(USER, "r1")).transaction_id == "3"
        assert (await store.get_receipt(USER, "r2")).transaction_id == "2"
        assert (await store.get_transaction(USER, "1")).receipt_url is None

    @pytest.mark.asyncio
    async def test_rejected_receipts_excluded_from_open_run(
        self, service, store, sample_transactions, sample_receipts
    ) -> None:
        await _seed(store, sample_transactions, sample_receipts)
        await service.reject_match(USER, "r1")

        full = await service.rematch_all(USER)
        open_only = await service.rematch_all(USER, open_only=True)

        assert "r1" in [p.receipt.id for p in full.matched]
        assert "r1" not in [p.receipt.id for p in open_only.matched]
        assert "r1" not in [r.id for r in open_only.unmatched_receipts]

    @pytest.mark.asyncio
    async def test_persist_skips_rejected_receipts(
        self, service, store, sample_transactions, sample_receipts
    ) -> None:
        await _seed(store, sample_transactions, sample_receipts)
        await service.reject_match(USER, "r1")

        await service.rematch_all(USER, persist=True)

        rejected = await store.get_receipt(USER, "r1")
        assert rejected.match_status == MatchStatus.NO_MATCH
        assert rejected.transaction_id is None
        assert (await store.get_receipt(USER, "r2")).transaction_id == "2"
        assert (await store.get_transaction(USER, "1")).receipt_url is None
        assert (await store.get_transaction(USER, "1")).tax_category is None

    @pytest.mark.asyncio
    async def test_empty_user(self, service) -> None:
        result = await service.rematch_all("nobody")

        assert result.is_empty


class TestManualActions:
    """Tests for confirm, reject and unmatch."""

    @pytest.mark.asyncio
    async def test_confirm_scores_when_not_given(
        self, service, store, sample_transactions, sample_receipts
    ) -> None:
        await _seed(store, sample_transactions, sample_receipts)

        receipt = await service.confirm_match(USER, "r3", "4")

        assert receipt.transaction_id == "4"
        assert receipt.match_status == MatchStatus.MATCHED
        assert receipt.match_confidence == 0.2
        assert receipt.match_reasons == ["Within 2 days"]
        assert (await store.get_transaction(USER, "4")).tax_category == "Shipping"

    @pytest.mark.asyncio
    async def test_confirm_with_given_confidence(
        self, service, store, sample_transactions, sample_receipts
    ) -> None:
        await _seed(store, sample_transactions, sample_receipts)

        receipt = await service.confirm_match(USER, "r1", "1", 0.95, ["Picked by user"])

        assert receipt.match_confidence == 0.95
        assert receipt.match_reasons == ["Picked by user"]

    @pytest.mark.asyncio
    async def test_confirm_copies_deduction_fields(self, service, store) -> None:
        txn = make_transaction("1", "45.99", "2024-11-01", "Office Depot")
        receipt = make_receipt("r1", "45.99", "2024-11-01", "Office Depot", category="Supplies")
        receipt.tax_category = "Office expense"
        receipt.is_deductible = True
        await _seed(store, [txn], [receipt])

        await service.confirm_match(USER, "r1", "1")

        updated = await store.get_transaction(USER, "1")
        assert updated.tax_category == "Office expense"
        assert updated.is_tax_deductible is True

    @pytest.mark.asyncio
    async def test_confirm_again_is_allowed(
        self, service, store, sample_transactions, sample_receipts
    ) -> None:
        await _seed(store, sample_transactions, sample_receipts)

        await service.confirm_match(USER, "r1", "1")
        receipt = await service.confirm_match(USER, "r1", "1")

        assert receipt.transaction_id == "1"

    @pytest.mark.asyncio
    async def test_receipt_linked_elsewhere(
        self, service, store, sample_transactions, sample_receipts
    ) -> None:
        await _seed(store, sample_transactions, sample_receipts)
        await service.confirm_match(USER, "r1", "1")

        with pytest.raises(MatchConflictError, match="r1"):
            await service.confirm_match(USER, "r1", "2")

    @pytest.mark.asyncio
    async def test_transaction_linked_elsewhere(
        self, service, store, sample_transactions, sample_receipts
    ) -> None:
        await _seed(store, sample_transactions, sample_receipts)
        await service.confirm_match(USER, "r1", "1")

        with pytest.raises(MatchConflictError, match="Transaction 1"):
            await service.confirm_match(USER, "r2", "1")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("receipt_id,transaction_id", [("nope", "1"), ("r1", "nope")])
    async def test_confirm_missing_record(
        self, service, store, sample_transactions, sample_receipts, receipt_id, transaction_id
    ) -> None:
        await _seed(store, sample_transactions, sample_receipts)

        with pytest.raises(RecordNotFoundError, match="nope"):
            await service.confirm_match(USER, receipt_id, transaction_id)

    @pytest.mark.asyncio
    async def test_reject(self, service, store, sample_receipts) -> None:
        await _seed(store, receipts=sample_receipts)

        receipt = await service.reject_match(USER, "r3")

        assert receipt.match_status == MatchStatus.NO_MATCH
        assert (await store.get_receipt(USER, "r3")).match_status == MatchStatus.NO_MATCH

    @pytest.mark.asyncio
    async def test_unmatch(self, service, store, sample_transactions) -> None:
        receipt = make_receipt(
            "r1", "45.99", "2024-11-01", "Office Depot", image_url="https://img/r1.jpg"
        )
        await _seed(store, sample_transactions, [receipt])
        await service.confirm_match(USER, "r1", "1")

        unlinked = await service.unmatch(USER, "r1")

        assert unlinked.transaction_id is None
        assert unlinked.match_status == MatchStatus.PENDING
        assert unlinked.match_confidence is None
        assert unlinked.match_reasons == []
        assert (await store.get_transaction(USER, "1")).receipt_url is None

        result = await service.rematch_all(USER)
        assert ("1", "r1") in [(p.transaction.id, p.receipt.id) for p in result.matched]

    @pytest.mark.asyncio
    async def test_unmatch_clears_copied_tax_fields(self, service, store) -> None:
        txn = make_transaction("1", "45.99", "2024-11-01", "Office Depot")
        receipt = make_receipt("r1", "45.99", "2024-11-01", "Office Depot", category="Supplies")
        receipt.is_deductible = True
        await _seed(store, [txn], [receipt])
        await service.confirm_match(USER, "r1", "1")

        await service.unmatch(USER, "r1")

        restored = await store.get_transaction(USER, "1")
        assert restored.tax_category is None
        assert restored.is_tax_deductible is None

    @pytest.mark.asyncio
    async def test_unmatch_keeps_values_set_on_transaction(self, service, store) -> None:
        txn = make_transaction("1", "45.99", "2024-11-01", "Office Depot")
        txn.tax_category = "Home office"
        txn.is_tax_deductible = False
        await _seed(store, [txn], [make_receipt("r1", "45.99", "2024-11-01", "Office Depot")])
        await service.confirm_match(USER, "r1", "1")

        await service.unmatch(USER, "r1")

        restored = await store.get_transaction(USER, "1")
        assert restored.tax_category == "Home office"
        assert restored.is_tax_deductible is False

    @pytest.mark.asyncio
    async def test_unmatch_unlinked_is_noop(self, service, store, sample_receipts) -> None:
        await _seed(store, receipts=sample_receipts)

        receipt = await service.unmatch(USER, "r1")

        assert receipt is sample_receipts[0]


class TestDuplicateResolution:
    """Tests for deleting or keeping suspected duplicates."""

    @pytest.mark.asyncio
    async def test_delete_duplicate(self, service, store, sample_receipts) -> None:
        await _seed(store, receipts=sample_receipts)

        await service.delete_duplicate(USER, "r2")

        assert [r.id for r in await store.list_receipts(USER)] == ["r1", "r3"]

    @pytest.mark.asyncio
    async def test_delete_missing(self, service) -> None:
        with pytest.raises(RecordNotFoundError):
            await service.delete_duplicate(USER, "r404")

    @pytest.mark.asyncio
    async def test_keep_both_continues_to_matching(
        self, service, store, sample_transactions, sample_receipts
    ) -> None:
        await _seed(store, sample_transactions, sample_receipts)
        reupload = make_receipt("r1-again", "45.99", "2024-11-01", "Office Depot")
        intake = await service.process_new_receipt(USER, reupload)

        kept = await service.keep_both(
            USER, "r1-again", [d.receipt_id for d in intake.duplicates]
        )

        assert not kept.has_duplicates
        assert kept.proposed_match is not None
        assert kept.proposed_match.transaction.id == "1"


def test_suggest_categories(service) -> None:
    txn = make_transaction("9", "30.00", "2024-11-01", "Uber", "Ride to client")

    assert service.suggest_categories(txn) == ["Travel"]
