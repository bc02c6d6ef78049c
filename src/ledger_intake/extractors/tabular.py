"""
Tabular parsers for CSV exports and spreadsheets.

Column names are matched through COLUMN_ALIASES: for each logical field the
aliases are tried in order and the first column holding a value wins.
Header comparison is exact; add aliases to the table, not new branches.

Rows missing a vendor, a positive amount or a readable date are dropped
with a warning. Accepted rows are trusted structured data (confidence high).
"""

import io
import logging
from collections.abc import Iterable, Mapping
from typing import Any, Optional

import pandas as pd

from ..errors import TabularParseError
from ..normalizer import record_from_tabular_fields
from ..schemas import ExtractedRecord
from .base import BaseExtractor, has_extension

logger = logging.getLogger(__name__)

# Logical field -> ordered header aliases (first match wins)
COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "vendor_name": ("Vendor", "vendor", "Merchant", "merchant"),
    "amount": ("Amount", "amount", "Total", "total"),
    "transaction_date": ("Date", "date", "TransactionDate", "transaction_date"),
    "description": ("Description", "description", "Notes", "notes"),
    "invoice_number": ("InvoiceNumber", "invoice_number", "Invoice", "invoice"),
    "currency": ("Currency", "currency"),
    "notes": ("Notes", "notes"),
}

# Candidate CSV delimiters, in tie-break order
CSV_DELIMITERS = (",", ";", "\t")
CSV_MIME_TYPES = {"text/csv", "application/csv"}
SPREADSHEET_MIME_TYPES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel",
}


def _has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    try:
        return not bool(pd.isna(value))
    except (TypeError, ValueError):
        return True


def resolve_fields(
    row: Mapping[str, Any],
    aliases: Mapping[str, Iterable[str]] = COLUMN_ALIASES,
) -> dict[str, Any]:
    """Resolve a header-keyed row into logical fields using the alias table."""
    fields: dict[str, Any] = {}
    for field_name, candidates in aliases.items():
        fields[field_name] = None
        for header in candidates:
            if header in row and _has_value(row[header]):
                fields[field_name] = row[header]
                break
    return fields


def records_from_rows(rows: Iterable[Mapping[str, Any]], source: str) -> list[ExtractedRecord]:
    """Turn header-keyed rows into records, dropping invalid rows in order."""
    records: list[ExtractedRecord] = []
    skipped = 0

    # Row numbers are 1-based data rows (header excluded)
    for row_number, row in enumerate(rows, start=1):
        fields = resolve_fields(row)
        record = record_from_tabular_fields(fields)
        if record is None:
            skipped += 1
            logger.warning(
                "Skipping invalid %s row %d (vendor=%r, amount=%r, date=%r)",
                source,
                row_number,
                fields.get("vendor_name"),
                fields.get("amount"),
                fields.get("transaction_date"),
            )
            continue
        records.append(record)

    logger.info("Parsed %d expenses from %s (%d rows skipped)", len(records), source, skipped)
    return records


def _frame_rows(frame: pd.DataFrame) -> list[dict[str, Any]]:
    frame.columns = [str(column).strip() for column in frame.columns]
    return frame.to_dict(orient="records")


def detect_delimiter(text: str) -> str:
    """Pick the header line's delimiter; exports from decimal-comma locales use ';'."""
    header = text.lstrip().splitlines()[0]
    return max(CSV_DELIMITERS, key=header.count)


def parse_csv(data: bytes) -> list[ExtractedRecord]:
    """
    Parse a CSV export into records.

    Args:
        data: Raw file bytes (UTF-8, optional BOM)

    Returns:
        One record per valid row, in file order

    Raises:
        TabularParseError: The bytes are not UTF-8 or not CSV at all
    """
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise TabularParseError(f"CSV parsing failed: {e}") from e

    if not text.strip():
        logger.info("Parsed 0 expenses from CSV (empty file)")
        return []

    try:
        frame = pd.read_csv(
            io.StringIO(text),
            sep=detect_delimiter(text),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            skipinitialspace=True,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as e:
        raise TabularParseError(f"CSV parsing failed: {e}") from e

    return records_from_rows(_frame_rows(frame), "CSV")


def parse_spreadsheet(data: bytes) -> list[ExtractedRecord]:
    """
    Parse the first sheet of a workbook into records.

    Cells keep their native types: dates arrive as datetimes and plain
    numbers in a date column are read as spreadsheet serial dates.

    Raises:
        TabularParseError: The bytes are not a readable workbook
    """
    try:
        frame = pd.read_excel(io.BytesIO(data), sheet_name=0)
    except Exception as e:
        # Workbook readers raise a zoo of types (zip, xml, key, value errors)
        raise TabularParseError(f"Excel parsing failed: {e}") from e

    return records_from_rows(_frame_rows(frame), "Excel")


class CSVExtractor(BaseExtractor):
    """Structured CSV exports (bank, card or expense-tool downloads)."""

    @property
    def name(self) -> str:
        return "csv"

    @property
    def priority(self) -> int:
        return 60

    def can_extract(self, mime_type: Optional[str], file_name: Optional[str]) -> bool:
        return (mime_type or "").lower() in CSV_MIME_TYPES or has_extension(file_name, ".csv")

    def extract(self, data: bytes, mime_type: Optional[str] = None) -> list[ExtractedRecord]:
        return parse_csv(data)


class SpreadsheetExtractor(BaseExtractor):
    """Excel workbooks; only the first sheet is read."""

    @property
    def name(self) -> str:
        return "spreadsheet"

    @property
    def priority(self) -> int:
        return 50

    def can_extract(self, mime_type: Optional[str], file_name: Optional[str]) -> bool:
        return (mime_type or "").lower() in SPREADSHEET_MIME_TYPES or has_extension(
            file_name, ".xlsx", ".xls"
        )

    def extract(self, data: bytes, mime_type: Optional[str] = None) -> list[ExtractedRecord]:
        return parse_spreadsheet(data)
