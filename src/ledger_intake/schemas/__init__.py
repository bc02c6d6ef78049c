"""
SSOT (Single Source of Truth) schemas for the pipeline.

These canonical schemas are the ONLY models used across all modules.
No duplicated "near-same" models allowed.
"""

from .extracted_record import (
    DEFAULT_CURRENCY,
    Category,
    Confidence,
    ExtractedFields,
    ExtractedRecord,
    ParseFailure,
)
from .session import (
    ConfirmationResult,
    FailedRecord,
    FileOutcome,
    IngestionOptions,
    IngestionResult,
    IngestionSession,
    StagedFile,
    UploadedFile,
)

__all__ = [
    "DEFAULT_CURRENCY",
    "Category",
    "Confidence",
    "ConfirmationResult",
    "ExtractedFields",
    "ExtractedRecord",
    "FailedRecord",
    "FileOutcome",
    "IngestionOptions",
    "IngestionResult",
    "IngestionSession",
    "ParseFailure",
    "StagedFile",
    "UploadedFile",
]
