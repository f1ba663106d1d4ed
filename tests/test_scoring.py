"""Tests for transaction/receipt confidence scoring."""

import pytest

from expense_recon.config import MatchingConfig
from expense_recon.matching.scoring import ConfidenceScorer

from conftest import make_receipt, make_transaction


@pytest.fixture
def scorer() -> ConfidenceScorer:
    return ConfidenceScorer()


class TestAmountSignal:
    """Tests for the amount component."""

    def test_exact_amount(self, scorer) -> None:
        txn = make_transaction("1", "45.99", "2024-11-01", "A")
        receipt = make_receipt("r", "45.99", None, "B")

        assert scorer.score(txn, receipt) == (0.5, ["Exact amount"])

    def test_outflow_sign_is_ignored(self, scorer) -> None:
        txn = make_transaction("1", "-45.99", "2024-11-01", "A")
        receipt = make_receipt("r", "45.99", None, "B")

        assert scorer.score(txn, receipt) == (0.5, ["Exact amount"])

    def test_one_cent_off_is_only_similar(self, scorer) -> None:
        txn = make_transaction("1", "46.00", "2024-11-01", "A")
        receipt = make_receipt("r", "45.99", None, "B")

        assert scorer.score(txn, receipt) == (0.3, ["Similar amount"])

    def test_one_dollar_off_scores_nothing(self, scorer) -> None:
        txn = make_transaction("1", "46.99", "2024-11-01", "A")
        receipt = make_receipt("r", "45.99", None, "B")

        assert scorer.score(txn, receipt) == (0.0, [])


class TestDateSignal:
    """Tests for the date component."""

    @pytest.mark.parametrize(
        "receipt_date,expected",
        [
            ("2024-11-10", (0.3, ["Same date"])),
            ("2024-11-09", (0.2, ["Within 2 days"])),
            ("2024-11-12", (0.2, ["Within 2 days"])),
            ("2024-11-13", (0.0, [])),
        ],
    )
    def test_date_bands(self, scorer, receipt_date, expected) -> None:
        txn = make_transaction("1", "10.00", "2024-11-10", "A")
        receipt = make_receipt("r", "500.00", receipt_date, "B")

        assert scorer.score(txn, receipt) == expected

    def test_undated_receipt(self, scorer) -> None:
        txn = make_transaction("1", "10.00", "2024-11-10", "A")
        receipt = make_receipt("r", "500.00", None, "B")

        assert scorer.score(txn, receipt) == (0.0, [])


class TestMerchantSignal:
    """Tests for the merchant component."""

    def test_exact_merchant_ignores_case(self, scorer) -> None:
        txn = make_transaction("1", "10.00", "2024-11-10", "OFFICE DEPOT")
        receipt = make_receipt("r", "500.00", None, "Office Depot")

        assert scorer.score(txn, receipt) == (0.2, ["Exact merchant"])

    @pytest.mark.parametrize(
        "txn_merchant,receipt_merchant",
        [("Amazon Marketplace", "Amazon"), ("Shell", "Shell Oil #4412")],
    )
    def test_containment_either_way(self, scorer, txn_merchant, receipt_merchant) -> None:
        txn = make_transaction("1", "10.00", "2024-11-10", txn_merchant)
        receipt = make_receipt("r", "500.00", None, receipt_merchant)

        assert scorer.score(txn, receipt) == (0.15, ["Similar merchant"])

    def test_unrelated_merchants(self, scorer) -> None:
        txn = make_transaction("1", "10.00", "2024-11-10", "Dell")
        receipt = make_receipt("r", "500.00", None, "FedEx")

        assert scorer.score(txn, receipt) == (0.0, [])

    def test_blank_receipt_merchant_counts_as_contained(self, scorer) -> None:
        txn = make_transaction("1", "10.00", "2024-11-10", "Dell")
        receipt = make_receipt("r", "500.00", None, "")

        assert scorer.score(txn, receipt) == (0.15, ["Similar merchant"])


class TestCombinedScore:
    """Tests for the summed confidence."""

    def test_perfect_match(self, scorer, sample_transactions, sample_receipts) -> None:
        confidence, reasons = scorer.score(sample_transactions[0], sample_receipts[0])

        assert confidence == 1.0
        assert reasons == ["Exact amount", "Same date", "Exact merchant"]

    def test_sum_landing_on_threshold_is_exact(self, scorer) -> None:
        # 0.3 + 0.2 + 0.2 is 0.7000000000000001 in binary floating point
        txn = make_transaction("1", "45.99", "2024-11-01", "Staples")
        receipt = make_receipt("r", "45.50", "2024-11-03", "Staples")

        confidence, reasons = scorer.score(txn, receipt)

        assert confidence == 0.7
        assert reasons == ["Similar amount", "Within 2 days", "Exact merchant"]

    def test_custom_weights(self) -> None:
        config = MatchingConfig(date={"window_days": 5, "window_weight": 0.1})
        scorer = ConfidenceScorer(config)
        txn = make_transaction("1", "10.00", "2024-11-01", "A")
        receipt = make_receipt("r", "500.00", "2024-11-05", "B")

        assert scorer.score(txn, receipt) == (0.1, ["Within 5 days"])

    @pytest.mark.parametrize(
        "amount,when,merchant",
        [
            ("45.99", "2024-11-01", "Office Depot"),
            ("45.50", "2024-11-02", "Office"),
            ("0.00", None, ""),
            ("9999.99", "2023-01-01", "Zzz"),
        ],
    )
    def test_bounded(self, scorer, amount, when, merchant) -> None:
        txn = make_transaction("1", "45.99", "2024-11-01", "Office Depot")
        receipt = make_receipt("r", amount, when, merchant)

        confidence, _ = scorer.score(txn, receipt)

        assert 0.0 <= confidence <= 1.0
