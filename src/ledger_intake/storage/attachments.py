"""
Attachment service: stores a file and links it to a record.
"""

import logging
import re
import sqlite3
import time
from collections.abc import Callable
from typing import Any, Optional

from ..errors import AttachmentError
from ..records import RecordStore
from .blob import LocalBlobStorage, S3BlobStorage

logger = logging.getLogger(__name__)

UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def unique_file_name(file_name: str, timestamp_ms: int) -> str:
    """'{epoch ms}-{name}' with every character outside [A-Za-z0-9.-] replaced."""
    return f"{timestamp_ms}-{UNSAFE_FILENAME_CHARS.sub('_', file_name)}"


class AttachmentService:
    """Stores attachment bytes (S3, else local disk) and writes the row."""

    def __init__(
        self,
        records: RecordStore,
        s3: S3BlobStorage,
        local: LocalBlobStorage,
        clock: Callable[[], float] = time.time,
    ):
        self.records = records
        self.s3 = s3
        self.local = local
        self._clock = clock

    def attach_file(
        self,
        owner_id: str,
        entity_type: str,
        entity_id: str,
        file_name: str,
        data: bytes,
        mime_type: Optional[str],
    ) -> dict[str, Any]:
        """
        Store a file and create its attachment row.

        An S3 failure falls back to local disk; only a failure of the
        fallback (or of the row insert) raises.

        Raises:
            AttachmentError: The file could not be stored or linked
        """
        unique_name = unique_file_name(file_name, int(self._clock() * 1000))
        object_path = f"{entity_type}/{entity_id}/{unique_name}"

        storage_provider = "local"
        final_path = object_path

        if self.s3.is_configured():
            try:
                result = self.s3.upload(data, object_path, mime_type)
                storage_provider = "s3"
                final_path = result["key"]
            except AttachmentError as exc:
                logger.warning("S3 upload failed, falling back to local storage: %s", exc)

        if storage_provider == "local":
            final_path = self.local.write(object_path, data)

        try:
            attachment = self.records.create_attachment(
                entity_type=entity_type,
                entity_id=entity_id,
                file_name=file_name,
                file_path=final_path,
                file_size=len(data),
                mime_type=mime_type,
                uploaded_by=owner_id,
                storage_provider=storage_provider,
            )
        except sqlite3.Error as exc:
            raise AttachmentError(f"Failed to create attachment record: {exc}") from exc

        logger.info(
            "Attached %s to %s %s (%s)", file_name, entity_type, entity_id, storage_provider
        )
        return attachment
