"""
Excel report generator for expense reconciliation results.
Creates multi-sheet workbooks with formatted output.
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Optional
import logging
import re

from openpyxl import Workbook
from openpyxl.styles import Border, Font, PatternFill, Side
from openpyxl.worksheet.worksheet import Worksheet

from ..config import ReconConfig, SheetConfig
from ..models.results import (
    DuplicateMatch,
    MatchResult,
    ReconciliationSummary,
)
from ..models.transaction import ConfidenceLevel, Receipt
from ..utils.exceptions import ConfigurationError, ReportGenerationError

logger = logging.getLogger(__name__)

# Style definitions
HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True)
MATCH_FILL = PatternFill(start_color="C6EFCE", end_color="C6EFCE", fill_type="solid")
REVIEW_FILL = PatternFill(start_color="FFEB9C", end_color="FFEB9C", fill_type="solid")
UNMATCHED_FILL = PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid")
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)


class ExcelReportGenerator:
    """Generates Excel reconciliation reports with multiple sheets."""

    def __init__(self, config: ReconConfig):
        """
        Initialize the report generator.

        Args:
            config: Application configuration
        """
        self.config = config
        self.sheet_config = config.output.sheets

    def default_filename(self, now: Optional[datetime] = None) -> str:
        """
        Build the report filename from ``output.excel.filename_template``.

        ``{date}`` and ``{time}`` are filled from ``now`` when
        ``include_timestamp`` is set and left empty otherwise.
        """
        excel = self.config.output.excel
        if excel.include_timestamp:
            now = now or datetime.now()
            date_part, time_part = now.strftime("%Y%m%d"), now.strftime("%H%M%S")
        else:
            date_part = time_part = ""

        try:
            filename = excel.filename_template.format(date=date_part, time=time_part)
        except (KeyError, IndexError) as e:
            raise ConfigurationError(
                f"Invalid output.excel.filename_template {excel.filename_template!r}: {e}"
            ) from e

        # Separators around empty placeholders
        filename = re.sub(r"_{2,}", "_", filename)
        return re.sub(r"_(?=\.[^.]*$)", "", filename)

    def generate_report(
        self,
        summary: ReconciliationSummary,
        result: MatchResult,
        output_path: Path,
        duplicates: Optional[list[tuple[Receipt, list[DuplicateMatch]]]] = None,
    ) -> Path:
        """
        Generate the complete reconciliation report.

        Args:
            summary: Reconciliation summary
            result: Match result
            output_path: Path for output file
            duplicates: Output of ``DuplicateDetector.scan``

        Returns:
            Path to generated report

        Raises:
            ReportGenerationError: If the workbook cannot be written
        """
        logger.info(f"Generating Excel report: {output_path}")

        wb = Workbook()

        # Remove default sheet
        if wb.active:
            wb.remove(wb.active)

        sheets = self.sheet_config
        if sheets.summary.enabled:
            self._create_summary_sheet(wb, sheets.summary, summary)
        if sheets.matched.enabled:
            self._create_matched_sheet(wb, sheets.matched, result)
        if sheets.missing_receipts.enabled:
            self._create_missing_receipts_sheet(wb, sheets.missing_receipts, result)
        if sheets.unmatched_receipts.enabled:
            self._create_unmatched_receipts_sheet(wb, sheets.unmatched_receipts, result)
        if sheets.duplicates.enabled:
            self._create_duplicates_sheet(wb, sheets.duplicates, duplicates or [])
        if sheets.audit_trail.enabled:
            self._create_audit_trail_sheet(wb, sheets.audit_trail, summary, result)

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            wb.save(output_path)
        except OSError as e:
            raise ReportGenerationError(f"Failed to save report {output_path}: {e}") from e

        logger.info(f"Report saved: {output_path}")
        return output_path

    def _create_summary_sheet(
        self, wb: Workbook, sheet: SheetConfig, summary: ReconciliationSummary
    ) -> None:
        """Create the summary sheet with key metrics."""
        ws = wb.create_sheet(sheet.name)

        ws["A1"] = "Expense Reconciliation Summary"
        ws["A1"].font = Font(size=16, bold=True)
        ws.merge_cells("A1:D1")

        sections: list[tuple[str, list[tuple[str, Any]]]] = [
            (
                "File Information",
                [
                    ("Transactions File:", summary.transactions_filename),
                    ("Receipts File:", summary.receipts_filename),
                    (
                        "Reconciliation Date:",
                        summary.reconciliation_date.strftime("%Y-%m-%d %H:%M:%S"),
                    ),
                    ("Period:", f"{summary.period_start} to {summary.period_end}"),
                    ("Strategy:", summary.strategy),
                ],
            ),
            (
                "Record Counts",
                [
                    ("Total Transactions:", summary.total_transactions),
                    ("Total Receipts:", summary.total_receipts),
                    ("Matched Pairs:", summary.matched_count),
                    ("Missing Receipts:", summary.unmatched_transaction_count),
                    ("Unmatched Receipts:", summary.unmatched_receipt_count),
                    ("Possible Duplicates:", summary.duplicate_count),
                ],
            ),
            (
                "Match Rates",
                [
                    ("Transaction Match Rate:", f"{summary.transaction_match_rate:.1f}%"),
                    ("Receipt Match Rate:", f"{summary.receipt_match_rate:.1f}%"),
                ],
            ),
            (
                "Amount Totals",
                [
                    ("Transaction Total:", f"${summary.total_transaction_amount:,.2f}"),
                    ("Receipt Total:", f"${summary.total_receipt_amount:,.2f}"),
                    ("Matched Amount:", f"${summary.matched_amount:,.2f}"),
                    ("Unreceipted Amount:", f"${summary.unreceipted_amount:,.2f}"),
                ],
            ),
            (
                "Matches by Confidence",
                [
                    (f"{level.capitalize()}:", count)
                    for level, count in summary.matches_by_confidence.items()
                ],
            ),
        ]

        row = 3
        for title, rows in sections:
            ws[f"A{row}"] = title
            ws[f"A{row}"].font = Font(bold=True)
            row += 1
            for label, value in rows:
                ws[f"A{row}"] = label
                ws[f"B{row}"] = value
                row += 1
            row += 1

        ws.column_dimensions["A"].width = 30
        ws.column_dimensions["B"].width = 40

    def _create_matched_sheet(
        self, wb: Workbook, sheet: SheetConfig, result: MatchResult
    ) -> None:
        """Create the matched pairs sheet."""
        ws = wb.create_sheet(sheet.name)
        self._write_headers(
            ws,
            [
                "Transaction ID",
                "Transaction Date",
                "Transaction Amount",
                "Transaction Merchant",
                "Receipt ID",
                "Receipt Date",
                "Receipt Amount",
                "Receipt Merchant",
                "Confidence",
                "Level",
                "Matched By",
            ],
        )

        for row_num, pair in enumerate(result.matched, start=2):
            txn = pair.transaction
            receipt = pair.receipt
            row_data = [
                txn.id,
                txn.date,
                float(txn.amount),
                txn.merchant,
                receipt.id,
                receipt.date or "",
                float(receipt.amount),
                receipt.merchant,
                f"{pair.confidence:.2f}",
                pair.confidence_level.value,
                ", ".join(pair.matched_by),
            ]
            fill = MATCH_FILL if pair.confidence_level == ConfidenceLevel.HIGH else REVIEW_FILL
            self._write_row(ws, row_num, row_data, fill)

        self._auto_fit_columns(ws)

    def _create_missing_receipts_sheet(
        self, wb: Workbook, sheet: SheetConfig, result: MatchResult
    ) -> None:
        """Create the sheet of transactions without a receipt."""
        ws = wb.create_sheet(sheet.name)
        self._write_headers(
            ws, ["ID", "Date", "Amount", "Merchant", "Description", "Source"]
        )

        for row_num, txn in enumerate(result.unmatched_transactions, start=2):
            row_data = [
                txn.id,
                txn.date,
                float(txn.amount),
                txn.merchant,
                txn.description,
                txn.source,
            ]
            self._write_row(ws, row_num, row_data, UNMATCHED_FILL)

        self._auto_fit_columns(ws)

    def _create_unmatched_receipts_sheet(
        self, wb: Workbook, sheet: SheetConfig, result: MatchResult
    ) -> None:
        """Create the sheet of receipts without a transaction."""
        ws = wb.create_sheet(sheet.name)
        self._write_headers(
            ws, ["ID", "Date", "Amount", "Merchant", "Category", "Image URL"]
        )

        for row_num, receipt in enumerate(result.unmatched_receipts, start=2):
            row_data = [
                receipt.id,
                receipt.date or "",
                float(receipt.amount),
                receipt.merchant,
                receipt.category or "",
                receipt.image_url or "",
            ]
            self._write_row(ws, row_num, row_data, UNMATCHED_FILL)

        self._auto_fit_columns(ws)

    def _create_duplicates_sheet(
        self,
        wb: Workbook,
        sheet: SheetConfig,
        duplicates: list[tuple[Receipt, list[DuplicateMatch]]],
    ) -> None:
        """Create the possible duplicates sheet, one row per flagged pair."""
        ws = wb.create_sheet(sheet.name)
        self._write_headers(
            ws,
            [
                "Receipt ID",
                "Receipt Merchant",
                "Receipt Amount",
                "Duplicate Of",
                "Duplicate Merchant",
                "Duplicate Amount",
                "Score",
                "Level",
                "Reasons",
            ],
        )

        row_num = 2
        for receipt, matches in duplicates:
            for match in matches:
                row_data = [
                    receipt.id,
                    receipt.merchant,
                    float(receipt.amount),
                    match.receipt_id,
                    match.receipt.merchant,
                    float(match.receipt.amount),
                    match.match_score,
                    match.confidence_level.value,
                    ", ".join(match.reasons),
                ]
                fill = (
                    UNMATCHED_FILL
                    if match.confidence_level == ConfidenceLevel.HIGH
                    else REVIEW_FILL
                )
                self._write_row(ws, row_num, row_data, fill)
                row_num += 1

        self._auto_fit_columns(ws)

    def _create_audit_trail_sheet(
        self,
        wb: Workbook,
        sheet: SheetConfig,
        summary: ReconciliationSummary,
        result: MatchResult,
    ) -> None:
        """Create the audit trail sheet."""
        ws = wb.create_sheet(sheet.name)

        ws["A1"] = "Reconciliation Audit Trail"
        ws["A1"].font = Font(size=14, bold=True)

        audit_info = [
            ("Generated At:", datetime.now().strftime("%Y-%m-%d %H:%M:%S")),
            ("Config File:", summary.config_file_used or "Default"),
            ("Strategy:", summary.strategy),
            ("Processing Time:", f"{summary.processing_time_seconds:.2f} seconds"),
        ]

        row = 3
        for label, value in audit_info:
            ws[f"A{row}"] = label
            ws[f"B{row}"] = value
            row += 1

        row += 1
        ws[f"A{row}"] = "Match Log"
        ws[f"A{row}"].font = Font(bold=True)
        row += 1

        headers = ["Timestamp", "Transaction ID", "Receipt ID", "Confidence", "Reasons"]
        for col, header in enumerate(headers, start=1):
            cell = ws.cell(row=row, column=col, value=header)
            cell.fill = HEADER_FILL
            cell.font = HEADER_FONT
        row += 1

        for pair in result.matched:
            log_data = [
                pair.matched_at.strftime("%Y-%m-%d %H:%M:%S"),
                pair.transaction.id,
                pair.receipt.id,
                f"{pair.confidence:.2f}",
                ", ".join(pair.matched_by),
            ]
            for col, value in enumerate(log_data, start=1):
                ws.cell(row=row, column=col, value=value)
            row += 1

        self._auto_fit_columns(ws)

    def _write_headers(self, ws: Worksheet, headers: list[str]) -> None:
        for col, header in enumerate(headers, start=1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.fill = HEADER_FILL
            cell.font = HEADER_FONT
            cell.border = THIN_BORDER

    def _write_row(
        self, ws: Worksheet, row_num: int, row_data: list[Any], fill: PatternFill
    ) -> None:
        for col, value in enumerate(row_data, start=1):
            cell = ws.cell(row=row_num, column=col, value=value)
            cell.border = THIN_BORDER
            cell.fill = fill

    def _auto_fit_columns(self, ws: Worksheet) -> None:
        """Auto-fit column widths based on content."""
        for column_cells in ws.columns:
            column = column_cells[0].column_letter
            max_length = max(
                (len(str(cell.value)) for cell in column_cells if cell.value is not None),
                default=0,
            )
            ws.column_dimensions[column].width = min(max_length + 2, 50)
