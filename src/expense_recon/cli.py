"""
Command-line interface for the expense reconciliation tool.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional
import logging
import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from . import __version__
from .config import ReconConfig, generate_default_config, load_config
from .matching.categories import CategorySuggester
from .matching.duplicates import DuplicateDetector
from .matching.engine import TransactionMatcher
from .models.results import DuplicateMatch, ReconciliationSummary
from .parsers.receipt_parser import ReceiptParser
from .parsers.transaction_parser import TransactionParser
from .reconciliation.service import ReconciliationAuditEvent, log_reconciliation_event
from .reports.excel_generator import ExcelReportGenerator
from .utils.exceptions import ReconciliationError
from .utils.logging_config import setup_logging

console = Console()


@click.group()
@click.version_option(version=__version__)
def main():
    """Match bank transactions with receipts and flag duplicate receipts."""
    pass


@main.command()
@click.argument("transactions_file", type=click.Path(exists=True, path_type=Path))
@click.argument("receipts_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "-c",
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file (YAML)",
)
@click.option("-o", "--output", type=click.Path(path_type=Path), help="Output Excel file path")
@click.option(
    "--strategy",
    type=click.Choice(["greedy", "optimal"]),
    default=None,
    help="Override the matching strategy",
)
@click.option(
    "--threshold",
    type=click.FloatRange(0.0, 1.0),
    default=None,
    help="Override the confidence threshold (0-1)",
)
@click.option(
    "--user-id", default="local", show_default=True, help="User recorded in the audit trail"
)
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option(
    "--dry-run", is_flag=True, help="Match and show summary without generating report"
)
def reconcile(
    transactions_file: Path,
    receipts_file: Path,
    config: Optional[Path],
    output: Optional[Path],
    strategy: Optional[str],
    threshold: Optional[float],
    user_id: str,
    verbose: bool,
    dry_run: bool,
):
    """
    Match a transactions export against a receipts export.

    TRANSACTIONS_FILE: Path to the bank transactions CSV
    RECEIPTS_FILE: Path to the receipts CSV
    """
    try:
        recon_config = load_config(config)
        _setup_logging(recon_config, verbose)

        if strategy is not None:
            recon_config.matching.strategy = strategy
        if threshold is not None:
            recon_config.matching.confidence_threshold = threshold

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Parsing transactions...", total=None)
            transactions = TransactionParser(recon_config).parse_file(transactions_file)
            progress.update(task, completed=True)

            task = progress.add_task("Parsing receipts...", total=None)
            receipts = ReceiptParser(recon_config).parse_file(receipts_file)
            progress.update(task, completed=True)

            task = progress.add_task("Checking for duplicate receipts...", total=None)
            duplicates = DuplicateDetector(recon_config.duplicates).scan(receipts)
            progress.update(task, completed=True)

            task = progress.add_task("Matching...", total=None)
            start_time = datetime.now()

            matcher = TransactionMatcher(recon_config)
            result = matcher.match(transactions, receipts)

            processing_time = (datetime.now() - start_time).total_seconds()
            progress.update(task, completed=True)

            summary = matcher.generate_summary(
                transactions=transactions,
                receipts=receipts,
                result=result,
                transactions_filename=transactions_file.name,
                receipts_filename=receipts_file.name,
                processing_time=processing_time,
                duplicate_count=len(duplicates),
            )

        _display_summary(summary)
        log_reconciliation_event(
            ReconciliationAuditEvent.RUN_COMPLETED,
            user_id,
            {
                "transactions_file": transactions_file.name,
                "receipts_file": receipts_file.name,
                "strategy": result.strategy,
                "matched": len(result.matched),
                "unmatched_transactions": len(result.unmatched_transactions),
                "unmatched_receipts": len(result.unmatched_receipts),
                "duplicates": len(duplicates),
                "dry_run": dry_run,
            },
            actor="cli",
        )

        if dry_run:
            console.print("\n[yellow]Dry run - no report generated[/yellow]")
            return

        generator = ExcelReportGenerator(recon_config)
        if output is None:
            output = Path(generator.default_filename())

        report_path = generator.generate_report(
            summary=summary,
            result=result,
            output_path=output,
            duplicates=duplicates,
        )

        console.print(f"\n[green]Report generated: {report_path}[/green]")

    except ReconciliationError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        if verbose:
            console.print_exception()
        sys.exit(1)


@main.command()
@click.argument("receipts_file", type=click.Path(exists=True, path_type=Path))
@click.argument("receipt_id", required=False)
@click.option("-c", "--config", type=click.Path(exists=True, path_type=Path))
def duplicates(receipts_file: Path, receipt_id: Optional[str], config: Optional[Path]):
    """
    Find possible duplicate receipts.

    RECEIPTS_FILE: Path to the receipts CSV
    RECEIPT_ID: Check only this receipt (default: every receipt)
    """
    try:
        recon_config = load_config(config)
        receipts = ReceiptParser(recon_config).parse_file(receipts_file)
    except ReconciliationError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)

    detector = DuplicateDetector(recon_config.duplicates)

    if receipt_id is not None:
        candidate = next((r for r in receipts if r.id == receipt_id), None)
        if candidate is None:
            console.print(f"[red]Receipt {receipt_id} not found in {receipts_file.name}[/red]")
            sys.exit(1)
        matches = detector.detect(candidate, receipts)
        flagged = [(candidate, matches)] if matches else []
    else:
        flagged = detector.scan(receipts)

    if not flagged:
        console.print("[green]No duplicate receipts found[/green]")
        return

    table = Table(title=f"Possible Duplicates: {receipts_file.name}")
    table.add_column("Receipt")
    table.add_column("Duplicate Of")
    table.add_column("Score", justify="right")
    table.add_column("Level")
    table.add_column("Reasons")

    for receipt, matches in flagged:
        for match in matches:
            table.add_row(
                receipt.id,
                match.receipt_id,
                str(match.match_score),
                _level_markup(match),
                ", ".join(match.reasons),
            )

    console.print(table)


@main.command()
@click.argument("name")
@click.argument("merchant", required=False, default="")
@click.option("-c", "--config", type=click.Path(exists=True, path_type=Path))
def suggest(name: str, merchant: str, config: Optional[Path]):
    """
    Suggest tax categories for a transaction.

    NAME: Transaction name or description
    MERCHANT: Merchant name (optional)
    """
    try:
        recon_config = load_config(config)
    except ReconciliationError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)

    suggestions = CategorySuggester.from_config(recon_config.categories).suggest(name, merchant)
    if not suggestions:
        console.print("[yellow]No category suggestions[/yellow]")
        return

    for category in suggestions:
        console.print(f"- {category}")


@main.command("parse-transactions")
@click.argument("transactions_file", type=click.Path(exists=True, path_type=Path))
@click.option("-c", "--config", type=click.Path(exists=True, path_type=Path))
def parse_transactions(transactions_file: Path, config: Optional[Path]):
    """
    Parse a transactions CSV and display a preview.

    TRANSACTIONS_FILE: Path to the bank transactions CSV
    """
    try:
        recon_config = load_config(config)
        transactions = TransactionParser(recon_config).parse_file(transactions_file)
    except ReconciliationError as e:
        console.print(f"[red]Error parsing file: {escape(str(e))}[/red]")
        sys.exit(1)

    table = Table(title=f"Transactions: {transactions_file.name}")
    table.add_column("Date")
    table.add_column("Merchant")
    table.add_column("Amount", justify="right")
    table.add_column("Source")
    table.add_column("Description")

    for txn in transactions[:20]:  # Show first 20
        table.add_row(
            str(txn.date),
            txn.merchant or "-",
            f"${txn.amount:,.2f}",
            txn.source or "-",
            _truncate(txn.description),
        )

    console.print(table)
    _print_totals(len(transactions), "transactions")


@main.command("parse-receipts")
@click.argument("receipts_file", type=click.Path(exists=True, path_type=Path))
@click.option("-c", "--config", type=click.Path(exists=True, path_type=Path))
def parse_receipts(receipts_file: Path, config: Optional[Path]):
    """
    Parse a receipts CSV and display a preview.

    RECEIPTS_FILE: Path to the receipts CSV
    """
    try:
        recon_config = load_config(config)
        receipts = ReceiptParser(recon_config).parse_file(receipts_file)
    except ReconciliationError as e:
        console.print(f"[red]Error parsing file: {escape(str(e))}[/red]")
        sys.exit(1)

    table = Table(title=f"Receipts: {receipts_file.name}")
    table.add_column("Date")
    table.add_column("Merchant")
    table.add_column("Amount", justify="right")
    table.add_column("Category")
    table.add_column("Transaction")

    for receipt in receipts[:20]:  # Show first 20
        table.add_row(
            str(receipt.date) if receipt.date else "-",
            receipt.merchant or "-",
            f"${receipt.amount:,.2f}",
            receipt.category or "-",
            receipt.transaction_id or "-",
        )

    console.print(table)
    _print_totals(len(receipts), "receipts")


@main.command("init-config")
@click.option(
    "-o", "--output", type=click.Path(path_type=Path), default=Path("config.yaml")
)
def init_config(output: Path):
    """Generate a sample configuration file."""
    generate_default_config(output)
    console.print(f"[green]Configuration file generated: {output}[/green]")


def _setup_logging(config: ReconConfig, verbose: bool) -> None:
    if verbose:
        level = logging.DEBUG
    else:
        level = getattr(logging, config.logging.level.upper(), logging.INFO)
    log_file = Path(config.logging.file) if config.logging.file else None
    audit_file = Path(config.logging.audit_file) if config.logging.audit_file else None
    setup_logging(
        level, log_file=log_file, log_format=config.logging.format, audit_file=audit_file
    )


def _display_summary(summary: ReconciliationSummary) -> None:
    """Display reconciliation summary in console."""
    table = Table(title="Reconciliation Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Total Transactions", str(summary.total_transactions))
    table.add_row("Total Receipts", str(summary.total_receipts))
    table.add_row("Matched", str(summary.matched_count))
    table.add_row("Missing Receipts", str(summary.unmatched_transaction_count))
    table.add_row("Unmatched Receipts", str(summary.unmatched_receipt_count))
    table.add_row("Possible Duplicates", str(summary.duplicate_count))
    table.add_row("Transaction Match Rate", f"{summary.transaction_match_rate:.1f}%")
    table.add_row("Receipt Match Rate", f"{summary.receipt_match_rate:.1f}%")
    table.add_row("Unreceipted Amount", f"${summary.unreceipted_amount:,.2f}")
    table.add_row("Strategy", summary.strategy)
    table.add_row("Processing Time", f"{summary.processing_time_seconds:.2f}s")

    console.print(table)


def _level_markup(match: DuplicateMatch) -> str:
    colors = {"high": "red", "medium": "yellow", "low": "white"}
    level = match.confidence_level.value
    return f"[{colors[level]}]{level}[/{colors[level]}]"


def _truncate(text: str, width: int = 40) -> str:
    return text[:width] + "..." if len(text) > width else text


def _print_totals(count: int, noun: str) -> None:
    if count > 20:
        console.print(f"\n... and {count - 20} more {noun}")
    console.print(f"\nTotal {noun}: {count}")


if __name__ == "__main__":
    main()
