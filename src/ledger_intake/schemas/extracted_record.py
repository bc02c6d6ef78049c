"""
Canonical extracted record (SSOT).

Every extraction path (CSV, spreadsheet, PDF, image, failure) produces this
exact shape. No other module may invent another "expense candidate" schema.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

DEFAULT_CURRENCY = "USD"


class Confidence(str, Enum):
    """
    Qualitative trust label shown in the review UI.

    HIGH: Structured tabular source
    MEDIUM: Extraction service default when it reports nothing usable
    LOW: Extraction failed or the response could not be parsed
    """

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def parse(cls, value: Any, default: Optional["Confidence"] = None) -> "Confidence":
        """Map a free-form label onto the enum; unknown labels get the default."""
        fallback = default or cls.MEDIUM
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return fallback
        try:
            return cls(value.strip().lower())
        except ValueError:
            return fallback


# Fields cleared on an error record
FINANCIAL_FIELDS = (
    "vendor_name",
    "amount",
    "transaction_date",
    "description",
    "invoice_number",
    "notes",
    "line_items",
)


@dataclass
class ExtractedRecord:
    """One candidate financial transaction pending review."""

    # Identity within a session (not a primary key)
    temp_id: str = ""

    # Provenance of the source file
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    file_mime_type: Optional[str] = None

    # Financial fields
    vendor_name: Optional[str] = None
    amount: Optional[Decimal] = None  # Always positive when present
    transaction_date: Optional[str] = None  # YYYY-MM-DD
    description: Optional[str] = None
    invoice_number: Optional[str] = None
    notes: Optional[str] = None
    line_items: Optional[str] = None
    currency: str = DEFAULT_CURRENCY

    confidence: Confidence = Confidence.MEDIUM

    # Assignment
    category_id: Optional[str] = None
    payment_method_id: Optional[str] = None

    # Failure / diagnostics
    error: Optional[str] = None
    raw_response: Optional[dict[str, Any]] = None

    @classmethod
    def failed(
        cls,
        error: str,
        temp_id: str = "",
        file_name: Optional[str] = None,
        file_size: Optional[int] = None,
        file_mime_type: Optional[str] = None,
    ) -> "ExtractedRecord":
        """Build the record that stands in for a file that could not be processed."""
        return cls(
            temp_id=temp_id,
            file_name=file_name,
            file_size=file_size,
            file_mime_type=file_mime_type,
            confidence=Confidence.LOW,
            error=error,
        )

    @property
    def is_usable(self) -> bool:
        """True when the record can become a permanent expense as-is."""
        return (
            self.error is None
            and bool(self.vendor_name)
            and self.amount is not None
            and self.amount > 0
            and bool(self.transaction_date)
        )

    def to_dict(self) -> dict:
        """Serialize to dictionary for JSON storage."""
        data = {
            "temp_id": self.temp_id,
            "file_name": self.file_name,
            "file_size": self.file_size,
            "file_mime_type": self.file_mime_type,
            "vendor_name": self.vendor_name,
            "amount": str(self.amount) if self.amount is not None else None,
            "transaction_date": self.transaction_date,
            "description": self.description,
            "invoice_number": self.invoice_number,
            "notes": self.notes,
            "line_items": self.line_items,
            "currency": self.currency,
            "confidence": self.confidence.value,
            "category_id": self.category_id,
            "payment_method_id": self.payment_method_id,
        }
        if self.error is not None:
            data["error"] = self.error
        if self.raw_response is not None:
            data["raw_response"] = self.raw_response
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ExtractedRecord":
        """Deserialize from dictionary."""
        amount = None
        if data.get("amount") not in (None, ""):
            try:
                amount = Decimal(str(data["amount"]))
            except InvalidOperation:
                amount = None

        return cls(
            temp_id=data.get("temp_id", ""),
            file_name=data.get("file_name"),
            file_size=data.get("file_size"),
            file_mime_type=data.get("file_mime_type"),
            vendor_name=data.get("vendor_name"),
            amount=amount,
            transaction_date=data.get("transaction_date"),
            description=data.get("description"),
            invoice_number=data.get("invoice_number"),
            notes=data.get("notes"),
            line_items=data.get("line_items"),
            currency=data.get("currency") or DEFAULT_CURRENCY,
            confidence=Confidence.parse(data.get("confidence")),
            category_id=data.get("category_id"),
            payment_method_id=data.get("payment_method_id"),
            error=data.get("error"),
            raw_response=data.get("raw_response"),
        )


@dataclass
class Category:
    """Externally owned category reference data (read-only here)."""

    id: str
    name: str
    type: str = "expense"  # expense | revenue
    is_active: bool = True


@dataclass
class ExtractedFields:
    """Financial fields successfully parsed from an extraction-service reply."""

    vendor_name: Optional[str] = None
    amount: Optional[Decimal] = None
    transaction_date: Optional[str] = None
    description: Optional[str] = None
    invoice_number: Optional[str] = None
    currency: str = DEFAULT_CURRENCY
    line_items: Optional[str] = None
    confidence: Confidence = Confidence.MEDIUM
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class ParseFailure:
    """An extraction-service reply that was not a usable JSON object."""

    reason: str
    response_text: str
