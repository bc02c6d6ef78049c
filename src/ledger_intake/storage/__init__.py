"""
Attachment storage (S3 with local-disk fallback).
"""

from .attachments import AttachmentService, unique_file_name
from .blob import LocalBlobStorage, S3BlobStorage

__all__ = ["AttachmentService", "LocalBlobStorage", "S3BlobStorage", "unique_file_name"]
