"""
Staged ingestion session and the per-item result types.

The session is the only multi-step state in the pipeline:
upload -> extract -> stage -> review -> confirm -> persist.
"""

import base64
from dataclasses import dataclass, field
from typing import Any, Optional

from .extracted_record import ExtractedRecord


@dataclass
class UploadedFile:
    """One file of an upload batch, as handed over by the HTTP layer."""

    original_name: str
    mime_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class StagedFile:
    """Original file bytes kept in the session until confirmation."""

    original_name: str
    mime_type: str
    size: int
    data: str  # base64

    @classmethod
    def from_upload(cls, upload: UploadedFile) -> "StagedFile":
        return cls(
            original_name=upload.original_name,
            mime_type=upload.mime_type,
            size=upload.size,
            data=base64.b64encode(upload.data).decode("ascii"),
        )

    def decode(self) -> bytes:
        """Return the original file bytes."""
        return base64.b64decode(self.data)

    def to_dict(self) -> dict:
        return {
            "original_name": self.original_name,
            "mime_type": self.mime_type,
            "size": self.size,
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StagedFile":
        return cls(
            original_name=data["original_name"],
            mime_type=data.get("mime_type", "application/octet-stream"),
            size=data.get("size", 0),
            data=data.get("data", ""),
        )


@dataclass
class IngestionSession:
    """
    Staged unit of work, namespaced by its owner.

    Lifecycle:
    - created once after a whole batch is processed
    - read any number of times during review
    - consumed exactly once by confirmation, or expired by the staging TTL
    """

    session_id: str
    user_id: str
    extracted_expenses: list[ExtractedRecord] = field(default_factory=list)
    files: list[StagedFile] = field(default_factory=list)
    created_at: str = ""  # ISO timestamp

    def find_record(self, temp_id: str) -> Optional[ExtractedRecord]:
        for record in self.extracted_expenses:
            if record.temp_id == temp_id:
                return record
        return None

    def find_file(self, file_name: Optional[str]) -> Optional[StagedFile]:
        if not file_name:
            return None
        for staged in self.files:
            if staged.original_name == file_name:
                return staged
        return None

    def duplicate_file_names(self) -> set[str]:
        """Names shared by several staged files; find_file returns the first of each."""
        seen: set[str] = set()
        duplicates: set[str] = set()
        for staged in self.files:
            if staged.original_name in seen:
                duplicates.add(staged.original_name)
            seen.add(staged.original_name)
        return duplicates

    def review_view(self) -> dict:
        """Buffer-free view for the review UI."""
        return {
            "session_id": self.session_id,
            "extracted_expenses": [r.to_dict() for r in self.extracted_expenses],
            "created_at": self.created_at,
        }

    def to_dict(self) -> dict:
        """Serialize to dictionary for JSON storage."""
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "extracted_expenses": [r.to_dict() for r in self.extracted_expenses],
            "files": [f.to_dict() for f in self.files],
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "IngestionSession":
        """Deserialize from dictionary."""
        return cls(
            session_id=data.get("session_id", ""),
            user_id=data["user_id"],
            extracted_expenses=[
                ExtractedRecord.from_dict(r) for r in data.get("extracted_expenses", [])
            ],
            files=[StagedFile.from_dict(f) for f in data.get("files", [])],
            created_at=data.get("created_at", ""),
        )


@dataclass
class IngestionOptions:
    """Caller-supplied defaults applied to every extracted record."""

    default_category_id: Optional[str] = None
    default_payment_method_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "IngestionOptions":
        data = data or {}
        return cls(
            default_category_id=data.get("default_category_id") or data.get("defaultCategoryId"),
            default_payment_method_id=(
                data.get("default_payment_method_id") or data.get("defaultPaymentMethodId")
            ),
        )


@dataclass
class FileOutcome:
    """Per-file result: either records (success) or an error descriptor."""

    upload: UploadedFile
    records: list[ExtractedRecord] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class IngestionResult:
    """What the upload step returns: a handle plus buffer-free records."""

    session_id: str
    extracted_expenses: list[dict[str, Any]]

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "extracted_expenses": self.extracted_expenses,
        }


@dataclass
class FailedRecord:
    """One approved record that could not be created."""

    temp_id: Optional[str]
    vendor_name: Optional[str]
    error: str

    def to_dict(self) -> dict:
        return {
            "temp_id": self.temp_id,
            "vendor_name": self.vendor_name,
            "error": self.error,
        }


@dataclass
class ConfirmationResult:
    """Outcome of confirming a session: partial success is expected."""

    created: list[dict[str, Any]] = field(default_factory=list)
    failed: list[FailedRecord] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "created": len(self.created),
            "failed": len(self.failed),
            "expenses": self.created,
            "errors": [f.to_dict() for f in self.failed],
        }
