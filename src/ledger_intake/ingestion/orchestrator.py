"""
Ingestion orchestrator: upload batch -> extracted records -> staged session.

Files are processed sequentially in upload order. Each file's extraction is
the only guarded call; a failing file becomes an error record and the batch
continues. The session is written once, after the whole batch.
"""

import logging
import sqlite3
import uuid
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Optional, Union

from ..classifier import CategoryClassifier
from ..config import StagingConfig
from ..errors import ExtractionError, IntakeError, NoFilesError
from ..extractors import ExtractorRouter
from ..records import RecordStore
from ..schemas import (
    Category,
    ExtractedRecord,
    FileOutcome,
    IngestionOptions,
    IngestionResult,
    IngestionSession,
    StagedFile,
    UploadedFile,
)
from ..staging import StagingStore

logger = logging.getLogger(__name__)


def new_temp_id() -> str:
    return str(uuid.uuid4())


class IngestionOrchestrator:
    """Turns an upload batch into a staged, user-scoped session."""

    def __init__(
        self,
        router: ExtractorRouter,
        classifier: CategoryClassifier,
        records: RecordStore,
        store: StagingStore,
        staging_config: Optional[StagingConfig] = None,
    ):
        self.router = router
        self.classifier = classifier
        self.records = records
        self.store = store
        self.staging_config = staging_config or StagingConfig()

    def session_key(self, session_id: str) -> str:
        return f"{self.staging_config.key_prefix}{session_id}"

    def _load_categories(self) -> list[Category]:
        try:
            return self.records.list_categories(type="expense", active=True)
        except sqlite3.Error as e:
            logger.error("Failed to load categories, skipping classification: %s", e)
            return []

    def _extract_file(self, upload: UploadedFile) -> FileOutcome:
        try:
            records = self.router.extract(upload.data, upload.mime_type, upload.original_name)
        except ExtractionError as e:
            logger.error("Error processing file %s: %s", upload.original_name, e)
            return FileOutcome(upload=upload, error=str(e))
        except Exception as e:
            logger.exception("Unexpected error processing file %s", upload.original_name)
            return FileOutcome(upload=upload, error=str(e) or type(e).__name__)
        return FileOutcome(upload=upload, records=records)

    def _annotate(
        self,
        record: ExtractedRecord,
        upload: UploadedFile,
        categories: list[Category],
        options: IngestionOptions,
    ) -> ExtractedRecord:
        record.temp_id = new_temp_id()
        record.file_name = upload.original_name
        record.file_size = upload.size
        record.file_mime_type = upload.mime_type

        category_id = self.classifier.classify(record.vendor_name, record.description, categories)
        record.category_id = category_id or options.default_category_id or None
        record.payment_method_id = options.default_payment_method_id or None
        return record

    def _records_for(
        self,
        outcome: FileOutcome,
        categories: list[Category],
        options: IngestionOptions,
    ) -> list[ExtractedRecord]:
        upload = outcome.upload
        if not outcome.ok:
            return [
                ExtractedRecord.failed(
                    error=outcome.error or "Unknown error",
                    temp_id=new_temp_id(),
                    file_name=upload.original_name,
                    file_size=upload.size,
                    file_mime_type=upload.mime_type,
                )
            ]
        return [self._annotate(record, upload, categories, options) for record in outcome.records]

    def ingest(
        self,
        files: Sequence[UploadedFile],
        owner_id: str,
        options: Union[IngestionOptions, dict, None] = None,
    ) -> IngestionResult:
        """
        Extract, classify and stage an upload batch.

        Args:
            files: Uploaded files in upload order
            owner_id: User the session belongs to
            options: Default category / payment method for every record

        Returns:
            Session id and buffer-free record dicts

        Raises:
            NoFilesError: Empty batch (nothing is staged)
            IntakeError: The session could not be staged
        """
        if not files:
            raise NoFilesError()

        if not isinstance(options, IngestionOptions):
            options = IngestionOptions.from_dict(options)

        session_id = str(uuid.uuid4())
        categories = self._load_categories()
        extracted: list[ExtractedRecord] = []

        for index, upload in enumerate(files, start=1):
            logger.info("Processing file %d/%d: %s", index, len(files), upload.original_name)
            outcome = self._extract_file(upload)
            extracted.extend(self._records_for(outcome, categories, options))

        session = IngestionSession(
            session_id=session_id,
            user_id=owner_id,
            extracted_expenses=extracted,
            files=[StagedFile.from_upload(upload) for upload in files],
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        duplicates = session.duplicate_file_names()
        if duplicates:
            logger.warning(
                "Session %s has several files named %s; confirmation attaches the first of each",
                session_id,
                ", ".join(sorted(duplicates)),
            )

        stored = self.store.set(
            self.session_key(session_id),
            session.to_dict(),
            self.staging_config.session_ttl_seconds,
        )
        if not stored:
            logger.error("Failed to stage session %s", session_id)
            raise IntakeError("Failed to stage extracted data")

        failed = sum(1 for record in extracted if record.error is not None)
        logger.info(
            "Processed %d files, extracted %d expenses (%d failed) for session %s, user %s",
            len(files),
            len(extracted),
            failed,
            session_id,
            owner_id,
        )

        return IngestionResult(
            session_id=session_id,
            extracted_expenses=[record.to_dict() for record in extracted],
        )

    def get_session_data(self, session_id: str, owner_id: str) -> Optional[IngestionSession]:
        """
        Load a staged session for its owner.

        Missing, expired and foreign sessions all return None.
        """
        data = self.store.get(self.session_key(session_id))
        if not data:
            logger.warning("Session not found or expired: %s", session_id)
            return None

        if data.get("user_id") != owner_id:
            logger.warning(
                "Session user mismatch: session=%s requesting_user=%s", session_id, owner_id
            )
            return None

        return IngestionSession.from_dict(data)

    def delete_session_data(self, session_id: str) -> bool:
        """Remove a staged session. Returns False when the store refused."""
        deleted = self.store.delete(self.session_key(session_id))
        if not deleted:
            logger.error("Error deleting session data: %s", session_id)
        return deleted
