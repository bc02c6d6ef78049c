"""
Bulk import service: request validation in front of ingestion and confirmation.

This is the seam an HTTP layer calls. Every whole-request rejection
(InvalidRequestError, SessionNotFoundError) happens here before any side
effect.
"""

import json
import logging
from collections.abc import Sequence
from typing import Any, Optional, Union

from ..classifier import CategoryClassifier
from ..config import Config
from ..errors import InvalidRequestError, NoFilesError, SessionNotFoundError, TooManyFilesError
from ..extraction_service import ExtractionServiceClient
from ..extractors import ExtractorRouter
from ..records import RecordStore
from ..schemas import ConfirmationResult, IngestionOptions, IngestionResult, UploadedFile
from ..staging import StagingStore, create_staging_store
from ..storage import AttachmentService, LocalBlobStorage, S3BlobStorage
from .committer import ConfirmationCommitter
from .orchestrator import IngestionOrchestrator

logger = logging.getLogger(__name__)


def parse_options(options: Union[IngestionOptions, dict, str, None]) -> IngestionOptions:
    """Accept options as an object, a dict or JSON text; bad input means none."""
    if options is None or isinstance(options, IngestionOptions):
        return options or IngestionOptions()

    if isinstance(options, str):
        if not options.strip():
            return IngestionOptions()
        try:
            options = json.loads(options)
        except json.JSONDecodeError as e:
            logger.warning("Error parsing options: %s", e)
            return IngestionOptions()

    if not isinstance(options, dict):
        logger.warning("Ignoring options of type %s", type(options).__name__)
        return IngestionOptions()

    return IngestionOptions.from_dict(options)


class BulkImportService:
    """Upload, review and confirm entry points."""

    def __init__(
        self,
        orchestrator: IngestionOrchestrator,
        committer: ConfirmationCommitter,
        max_files: int = 10,
        resources: Sequence[Any] = (),
    ):
        self.orchestrator = orchestrator
        self.committer = committer
        self.max_files = max_files
        # Owned objects with a close() method (staging store, HTTP client)
        self._resources = list(resources)

    def close(self) -> None:
        for resource in self._resources:
            resource.close()

    def upload_and_extract(
        self,
        files: Sequence[UploadedFile],
        owner_id: str,
        options: Union[IngestionOptions, dict, str, None] = None,
    ) -> IngestionResult:
        """
        Validate the batch and stage its extracted records.

        Raises:
            NoFilesError: Empty batch
            TooManyFilesError: More than max_files files
        """
        if not files:
            raise NoFilesError()
        if len(files) > self.max_files:
            raise TooManyFilesError(len(files), self.max_files)

        logger.info("Bulk import started: %d files uploaded by user %s", len(files), owner_id)
        return self.orchestrator.ingest(files, owner_id, parse_options(options))

    def get_session(self, session_id: str, owner_id: str) -> dict[str, Any]:
        """
        Review view of a staged session (no file bytes).

        Raises:
            InvalidRequestError: No session id
            SessionNotFoundError: Missing, expired or foreign session
        """
        if not session_id:
            raise InvalidRequestError("Session ID is required")

        session = self.orchestrator.get_session_data(session_id, owner_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session.review_view()

    def confirm_import(
        self,
        session_id: str,
        owner_id: str,
        expenses: Any,
    ) -> ConfirmationResult:
        """
        Create permanent expenses from approved items.

        Raises:
            InvalidRequestError: Missing session id, empty list, or item without temp_id
            SessionNotFoundError: Missing, expired or foreign session
        """
        if not session_id:
            raise InvalidRequestError("Session ID is required")
        if not expenses or not isinstance(expenses, list):
            raise InvalidRequestError("Expenses array is required")

        for position, item in enumerate(expenses):
            if not isinstance(item, dict) or not (item.get("temp_id") or item.get("tempId")):
                raise InvalidRequestError(f"Expense at position {position} is missing temp_id")

        return self.committer.confirm(session_id, owner_id, expenses)


def build_service(
    config: Config,
    store: Optional[StagingStore] = None,
    records: Optional[RecordStore] = None,
    client: Optional[ExtractionServiceClient] = None,
) -> BulkImportService:
    """Wire the full pipeline from configuration."""
    records = records or RecordStore(config.records_db_path)
    store = store or create_staging_store(config.staging)
    client = client or ExtractionServiceClient(config.extraction)

    orchestrator = IngestionOrchestrator(
        router=ExtractorRouter(client),
        classifier=CategoryClassifier(),
        records=records,
        store=store,
        staging_config=config.staging,
    )
    attachments = AttachmentService(
        records=records,
        s3=S3BlobStorage(config.storage),
        local=LocalBlobStorage(config.storage.local_upload_dir),
    )
    committer = ConfirmationCommitter(orchestrator, records, attachments)
    return BulkImportService(
        orchestrator,
        committer,
        max_files=config.ingestion.max_files,
        resources=(store, client),
    )
