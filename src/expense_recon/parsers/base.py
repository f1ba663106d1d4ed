"""
Shared CSV reading for transaction and receipt exports.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Generic, Optional, TypeVar
import logging

import pandas as pd

from ..config import ReconConfig
from ..utils.exceptions import ParseError

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT")


class CSVParser(Generic[RecordT]):
    """
    Base parser for CSV exports.

    Subclasses name their input section and turn one DataFrame row into a
    record; rows that cannot be converted are logged and skipped.
    """

    # Key under ``config.input``
    section: str = ""
    error_class: type[ParseError] = ParseError

    def __init__(self, config: ReconConfig):
        """
        Initialize the parser with configuration.

        Args:
            config: Application configuration object
        """
        self.config = config
        section_config = getattr(config.input, self.section, {}) or {}
        self.encoding = section_config.get("encoding", "utf-8")
        self.delimiter = section_config.get("delimiter", ",")
        self.date_format = section_config.get("date_format", "%Y-%m-%d")
        self.column_mappings: dict[str, str] = section_config.get("column_mappings", {})

    def parse_file(self, file_path: Path) -> list[RecordT]:
        """
        Parse a CSV export and return records.

        Args:
            file_path: Path to the CSV file

        Returns:
            List of parsed records

        Raises:
            ParseError: If the file cannot be read
        """
        logger.info(f"Parsing {self.section} CSV file: {file_path}")

        try:
            df = pd.read_csv(
                file_path,
                encoding=self.encoding,
                delimiter=self.delimiter,
                dtype=str,
                keep_default_na=False,
            )
        except Exception as e:
            logger.error(f"Failed to read CSV file: {e}")
            raise self.error_class(f"Failed to read CSV file: {e}") from e

        records = self._process_dataframe(df)
        logger.info(f"Extracted {len(records)} {self.section} from {file_path.name}")
        return records

    def _process_dataframe(self, df: pd.DataFrame) -> list[RecordT]:
        records: list[RecordT] = []

        for idx, row in df.iterrows():
            try:
                record = self._normalize_row(row, int(idx))
                if record is not None:
                    records.append(record)
            except Exception as e:
                logger.warning(f"Failed to process row {idx}: {e}")
                continue

        return records

    def _normalize_row(self, row: pd.Series, idx: int) -> Optional[RecordT]:
        raise NotImplementedError

    def _column(self, field_name: str) -> str:
        return self.column_mappings.get(field_name, field_name)

    def _cell(self, row: pd.Series, field_name: str) -> Optional[str]:
        """Stripped cell text for a logical field, None when blank or absent."""
        value: Any = row.get(self._column(field_name))
        if value is None or pd.isna(value):
            return None
        text = str(value).strip()
        return text or None

    def _parse_date(self, date_value: Optional[str]) -> Optional[date]:
        """
        Parse a date value from the CSV.

        Args:
            date_value: Date text

        Returns:
            Python date object or None
        """
        if not date_value:
            return None

        try:
            return datetime.strptime(date_value, self.date_format).date()
        except ValueError:
            # Try pandas parser as fallback
            try:
                parsed = pd.to_datetime(date_value)
            except (ValueError, TypeError):
                return None
            # "NaT" and "nan" parse to a missing timestamp
            return None if pd.isna(parsed) else parsed.date()

    def _parse_datetime(self, value: Optional[str]) -> Optional[datetime]:
        if not value:
            return None
        try:
            parsed = pd.to_datetime(value)
        except (ValueError, TypeError):
            return None
        return None if pd.isna(parsed) else parsed.to_pydatetime()

    def _parse_amount(self, amount_value: Optional[str]) -> Optional[Decimal]:
        """
        Parse an amount value from the CSV.

        Args:
            amount_value: Amount text, currency symbols and commas allowed

        Returns:
            Decimal amount or None
        """
        if not amount_value:
            return None

        cleaned = amount_value.replace("$", "").replace(",", "").strip()
        # Accounting negatives: (12.50)
        if cleaned.startswith("(") and cleaned.endswith(")"):
            cleaned = f"-{cleaned[1:-1]}"

        try:
            amount = Decimal(cleaned)
        except InvalidOperation:
            return None
        # Decimal also accepts NaN and Infinity
        return amount if amount.is_finite() else None
