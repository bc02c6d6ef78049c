"""
Normalizer: pure coercion helpers shared by every extraction path.

Turns loosely typed values (CSV strings, spreadsheet cells, LLM JSON) into
the canonical ExtractedRecord field types:
- Dates: ISO strings, complete free-form strings, datetime objects, spreadsheet
  serials (numeric or five-digit text)
- Amounts: 1,234.56 (English), 12,50 (decimal comma), 1.2E+03, currency
  symbols; (12.00) and a Unicode minus mark negatives
- Text: stripped, empty -> None

Nothing in here raises on bad input; unparseable values become None.
"""

import math
import numbers
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from dateutil import parser as date_parser
from openpyxl.utils.datetime import from_excel

from .schemas import DEFAULT_CURRENCY, Confidence, ExtractedFields, ExtractedRecord

ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:[T ].*)?$")
DECIMAL_COMMA_RE = re.compile(r"^-?\d+,\d{1,2}$")
# Accounting notation for negatives: (12.00)
PARENTHESIZED_RE = re.compile(r"^\((.*)\)$")
# Serials between 1927 and 2173; shorter digit runs are not read as dates
SERIAL_DATE_RE = re.compile(r"^\d{5}(?:\.\d+)?$")
UNICODE_MINUS = "\u2212"
CURRENCY_CODE_RE = re.compile(r"^[A-Za-z]{3}$")

# Two defaults that differ in every field: a component missing from the text
# shows up as a disagreement between the two parses
_DATE_DEFAULTS = (datetime(2000, 1, 1), datetime(2001, 2, 2))


def _is_missing(value: Any) -> bool:
    """None, empty/blank strings, NaN and NaT (pandas empty cells)."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        # NaN and NaT are the only values unequal to themselves
        return bool(value != value)
    except (TypeError, ValueError):
        return False


def normalize_date(value: Any) -> Optional[str]:
    """Normalize a date-like value to YYYY-MM-DD, or None if it cannot be read."""
    if _is_missing(value) or isinstance(value, bool):
        return None

    # datetime first: it is a subclass of date (pandas Timestamp is a datetime)
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()

    if isinstance(value, (numbers.Real, Decimal)):
        return _serial_to_date(value)

    text = str(value).strip()

    iso_match = ISO_DATE_RE.match(text)
    if iso_match:
        year, month, day = (int(part) for part in iso_match.groups())
        try:
            return date(year, month, day).isoformat()
        except ValueError:
            return None

    # CSV cells arrive as text, serial dates included
    if SERIAL_DATE_RE.match(text):
        return _serial_to_date(float(text))

    try:
        first, second = (date_parser.parse(text, default=d) for d in _DATE_DEFAULTS)
    except (ValueError, OverflowError, TypeError):
        return None
    if first.date() != second.date():
        # Year, month or day was filled in from the default
        return None
    return first.date().isoformat()


def _serial_to_date(value: Any) -> Optional[str]:
    """Spreadsheet serial date (days since the 1899-12-30 epoch)."""
    try:
        converted = from_excel(float(value))
    except (ValueError, OverflowError, TypeError):
        return None
    if isinstance(converted, datetime):
        return converted.date().isoformat()
    if isinstance(converted, date):
        return converted.isoformat()
    return None


def parse_amount(value: Any) -> Optional[Decimal]:
    """Parse a monetary value to Decimal; None when it is not a number."""
    if _is_missing(value) or isinstance(value, bool):
        return None

    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, numbers.Real):
        if math.isinf(float(value)):
            return None
        return Decimal(str(value))

    text = str(value).strip().replace(UNICODE_MINUS, "-")
    parenthesized = PARENTHESIZED_RE.match(text)
    if parenthesized:
        text = "-" + parenthesized.group(1).strip()

    # Plain and scientific notation ("1.2E+03") need no cleanup
    try:
        amount = Decimal(text)
    except InvalidOperation:
        pass
    else:
        return amount if amount.is_finite() else None

    # Drop currency symbols, codes and whitespace
    text = re.sub(r"[^\d,.\-]", "", text)
    if not text:
        return None

    if DECIMAL_COMMA_RE.match(text):
        text = text.replace(",", ".")
    else:
        text = text.replace(",", "")

    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def positive_amount(value: Any) -> Optional[Decimal]:
    """Parse an amount and keep it only when strictly positive."""
    amount = parse_amount(value)
    if amount is None or amount <= 0:
        return None
    return amount


def clean_text(value: Any) -> Optional[str]:
    """Strip text values; empty and missing become None."""
    if _is_missing(value):
        return None
    if isinstance(value, float) and value.is_integer():
        # pandas turns integer columns with gaps into floats
        return str(int(value))
    text = str(value).strip()
    return text or None


def normalize_currency(value: Any, default: str = DEFAULT_CURRENCY) -> str:
    """Upper-case a 3-letter currency code, falling back to the default."""
    text = clean_text(value)
    if text and CURRENCY_CODE_RE.match(text):
        return text.upper()
    return default


def record_from_tabular_fields(fields: dict[str, Any]) -> Optional[ExtractedRecord]:
    """
    Build a record from one tabular row already resolved to logical fields.

    Returns None when the row is not usable: missing vendor, non-positive or
    unparseable amount, or unparseable date.
    """
    vendor_name = clean_text(fields.get("vendor_name"))
    amount = positive_amount(fields.get("amount"))
    transaction_date = normalize_date(fields.get("transaction_date"))

    if not vendor_name or amount is None or not transaction_date:
        return None

    return ExtractedRecord(
        vendor_name=vendor_name,
        amount=amount,
        transaction_date=transaction_date,
        description=clean_text(fields.get("description")),
        invoice_number=clean_text(fields.get("invoice_number")),
        notes=clean_text(fields.get("notes")),
        line_items=None,
        currency=normalize_currency(fields.get("currency")),
        confidence=Confidence.HIGH,
    )


def fields_from_response(data: dict[str, Any]) -> ExtractedFields:
    """Coerce the extraction-service JSON object into typed fields."""
    line_items = data.get("lineItems")
    if isinstance(line_items, list):
        line_items = ", ".join(str(item) for item in line_items if not _is_missing(item))

    return ExtractedFields(
        vendor_name=clean_text(data.get("vendorName")),
        amount=positive_amount(data.get("amount")),
        transaction_date=normalize_date(data.get("transactionDate")),
        description=clean_text(data.get("description")),
        invoice_number=clean_text(data.get("invoiceNumber")),
        currency=normalize_currency(data.get("currency")),
        line_items=clean_text(line_items),
        confidence=Confidence.parse(data.get("confidence")),
        raw=data,
    )


def record_from_extracted_fields(fields: ExtractedFields) -> ExtractedRecord:
    """Build the single record a document extraction produces."""
    return ExtractedRecord(
        vendor_name=fields.vendor_name,
        amount=fields.amount,
        transaction_date=fields.transaction_date,
        description=fields.description,
        invoice_number=fields.invoice_number,
        currency=fields.currency,
        line_items=fields.line_items,
        confidence=fields.confidence,
        raw_response=fields.raw,
    )
