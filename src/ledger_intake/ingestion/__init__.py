"""
Ingestion pipeline: staged upload, review and confirmation.
"""

from .committer import ConfirmationCommitter, expense_fields
from .orchestrator import IngestionOrchestrator
from .service import BulkImportService, build_service, parse_options

__all__ = [
    "BulkImportService",
    "ConfirmationCommitter",
    "IngestionOrchestrator",
    "build_service",
    "expense_fields",
    "parse_options",
]
