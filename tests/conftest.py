"""Pytest configuration and fixtures."""

from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Optional

import pytest

from expense_recon.config import ReconConfig
from expense_recon.models import Receipt, Transaction


def make_transaction(
    id: str,
    amount: str,
    when: str,
    merchant: str,
    description: str = "",
    source: str = "Chase",
) -> Transaction:
    """Build a transaction from plain strings."""
    return Transaction(
        id=id,
        date=date.fromisoformat(when),
        amount=Decimal(amount),
        merchant=merchant,
        description=description,
        source=source,
    )


def make_receipt(
    id: str,
    amount: str,
    when: Optional[str],
    merchant: str,
    category: Optional[str] = None,
    transaction_id: Optional[str] = None,
    image_url: Optional[str] = None,
) -> Receipt:
    """Build a receipt from plain strings."""
    return Receipt(
        id=id,
        date=date.fromisoformat(when) if when else None,
        amount=Decimal(amount),
        merchant=merchant,
        category=category,
        transaction_id=transaction_id,
        image_url=image_url,
    )


@pytest.fixture
def config() -> ReconConfig:
    """Default configuration."""
    return ReconConfig()


@pytest.fixture
def sample_transactions() -> list[Transaction]:
    """Four card transactions from early November."""
    return [
        make_transaction("1", "45.99", "2024-11-01", "Office Depot", "Office supplies"),
        make_transaction("2", "125.50", "2024-11-02", "Amazon", "Business equipment", "PayPal"),
        make_transaction("3", "89.00", "2024-11-03", "Staples", "Printer paper", "Cash App"),
        make_transaction("4", "250.00", "2024-11-04", "Dell", "Computer parts"),
    ]


@pytest.fixture
def sample_receipts() -> list[Receipt]:
    """Three receipts, two of which belong to sample transactions."""
    return [
        make_receipt("r1", "45.99", "2024-11-01", "Office Depot", "Office Supplies"),
        make_receipt("r2", "125.50", "2024-11-02", "Amazon", "Equipment"),
        make_receipt("r3", "75.00", "2024-11-05", "FedEx", "Shipping"),
    ]


@pytest.fixture
def transactions_csv(tmp_path: Path) -> Path:
    """Transactions export matching ``sample_transactions``."""
    path = tmp_path / "transactions.csv"
    path.write_text(
        "id,date,amount,merchant,description,source\n"
        "1,2024-11-01,45.99,Office Depot,Office supplies,Chase\n"
        "2,2024-11-02,125.50,Amazon,Business equipment,PayPal\n"
        "3,2024-11-03,89.00,Staples,Printer paper,Cash App\n"
        "4,2024-11-04,250.00,Dell,Computer parts,Chase\n"
    )
    return path


@pytest.fixture
def receipts_csv(tmp_path: Path) -> Path:
    """Receipts export matching ``sample_receipts`` plus a re-upload of r1."""
    path = tmp_path / "receipts.csv"
    path.write_text(
        "id,date,amount,merchant,category,image_url,created_at,transaction_id\n"
        "r1,2024-11-01,45.99,Office Depot,Office Supplies,https://img/r1.jpg,2024-11-01T10:00:00,\n"
        "r2,2024-11-02,125.50,Amazon,Equipment,https://img/r2.jpg,2024-11-02T09:30:00,\n"
        "r3,2024-11-05,75.00,FedEx,Shipping,https://img/r3.jpg,2024-11-05T16:45:00,\n"
        "r4,2024-11-01,45.99,Office Depot,Office Supplies,https://img/r4.jpg,2024-11-08T08:00:00,\n"
    )
    return path
