"""
Blob storage backends for attachment files.

S3 is used when real-looking credentials are configured; the local upload
directory is the fallback. Both take a relative object path
("expense/<id>/<unique name>").
"""

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import AttachmentError

if TYPE_CHECKING:
    from ..config import StorageConfig

logger = logging.getLogger(__name__)


class S3BlobStorage:
    """Private S3 bucket storage (client created lazily)."""

    def __init__(self, config: "StorageConfig", client: Optional[Any] = None):
        self.config = config
        self._client = client

    def is_configured(self) -> bool:
        return self.config.is_s3_configured()

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = boto3.client(
                "s3",
                region_name=self.config.s3_region,
                aws_access_key_id=self.config.aws_access_key_id,
                aws_secret_access_key=self.config.aws_secret_access_key,
            )
        return self._client

    def upload(self, data: bytes, path: str, mime_type: Optional[str] = None) -> dict[str, str]:
        """
        Upload bytes under the given key.

        Returns:
            {"key", "bucket"}

        Raises:
            AttachmentError: S3 is not configured or the upload failed
        """
        if not self.is_configured():
            raise AttachmentError("S3 is not configured")

        params: dict[str, Any] = {
            "Bucket": self.config.s3_bucket,
            "Key": path,
            "Body": data,
        }
        if mime_type:
            params["ContentType"] = mime_type

        try:
            self.client.put_object(**params)
        except (BotoCoreError, ClientError) as exc:
            logger.error("S3 upload error for %s: %s", path, exc)
            raise AttachmentError("Failed to upload file to S3") from exc

        logger.info("File uploaded to S3: %s", path)
        return {"key": path, "bucket": self.config.s3_bucket}


class LocalBlobStorage:
    """Files under a local upload directory."""

    def __init__(self, root: Path | str):
        self.root = Path(root)

    def write(self, path: str, data: bytes) -> str:
        """
        Write bytes below the upload root.

        Returns:
            The stored file path (upload root joined with the object path)

        Raises:
            AttachmentError: The file could not be written
        """
        target = self.root / path
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise AttachmentError(f"Failed to write {target}: {exc}") from exc

        logger.info("File saved to local storage: %s", target)
        return target.as_posix()
