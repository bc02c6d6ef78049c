"""
Configuration management (SSOT).

This module defines ALL configuration for the intake pipeline.
All config keys are defined here; no other module should invent config keys.

Key invariants:
- The staging TTL is owned by configuration, never hard-coded by callers
- Secrets (API auth header, AWS keys) come from the environment first
- A missing or unreachable Redis is not an error: staging falls back to memory
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

# Credential fragments that mark a copied-from-docs placeholder value
PLACEHOLDER_MARKERS = ("your_", "example", "placeholder")


@dataclass
class ExtractionServiceConfig:
    """External extraction service (Ollama-compatible chat API).

    - base_url: Can be localhost, LAN IP, or remote URL
    - auth_header: Optional auth header for proxied deployments
    - text_model: Used for PDF text layers
    - vision_model: Used for receipt/invoice images
    """

    base_url: str = "http://localhost:11434"
    auth_header: str | None = None
    text_model: str = "qwen2.5:7b-instruct-q4_K_M"
    vision_model: str = "llama3.2-vision:11b"
    # Request timeout (seconds)
    timeout_seconds: int = 60
    # Maximum concurrent extraction requests (semaphore)
    max_concurrent: int = 2

    def is_remote(self) -> bool:
        """Check if the service URL is remote (not localhost)."""
        url_lower = self.base_url.lower()
        return not any(
            local in url_lower
            for local in ["localhost", "127.0.0.1", "::1", "host.docker.internal"]
        )


@dataclass
class StagingConfig:
    """Staging store settings.

    redis_url unset means the in-process store is used from the start.
    """

    redis_url: str | None = None
    # Sessions become unreadable after this many seconds
    session_ttl_seconds: int = 3600
    # How often the in-memory store reclaims expired keys
    sweep_interval_seconds: int = 300
    key_prefix: str = "bulk-import:"


@dataclass
class StorageConfig:
    """Attachment blob storage (S3 with local-disk fallback)."""

    s3_bucket: str = "ledger-intake-attachments"
    s3_region: str = "us-east-1"
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    local_upload_dir: Path = field(default_factory=lambda: Path("uploads"))

    def is_s3_configured(self) -> bool:
        """Check that real-looking AWS credentials are present."""
        access_key = self.aws_access_key_id or ""
        secret_key = self.aws_secret_access_key or ""
        if not access_key or not secret_key:
            return False

        # Real AWS keys are longer than docs placeholders
        if len(access_key) <= 10 or len(secret_key) <= 10:
            return False

        for marker in PLACEHOLDER_MARKERS:
            if marker in access_key.lower() or marker in secret_key.lower():
                return False
        return True


@dataclass
class IngestionConfig:
    """Upload batch settings."""

    max_files: int = 10


@dataclass
class Config:
    """Application configuration (SSOT)."""

    extraction: ExtractionServiceConfig = field(default_factory=ExtractionServiceConfig)
    staging: StagingConfig = field(default_factory=StagingConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    ingestion: IngestionConfig = field(default_factory=IngestionConfig)
    records_db_path: Path = field(default_factory=lambda: Path("data/records.db"))

    def validate(self) -> list[str]:
        """Validate configuration completeness and consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if not self.extraction.base_url:
            errors.append("extraction.base_url is required")
        if self.extraction.timeout_seconds <= 0:
            errors.append("extraction.timeout_seconds must be positive")
        if self.extraction.max_concurrent < 1:
            errors.append("extraction.max_concurrent must be at least 1")

        if self.staging.session_ttl_seconds <= 0:
            errors.append("staging.session_ttl_seconds must be positive")
        if self.staging.sweep_interval_seconds <= 0:
            errors.append("staging.sweep_interval_seconds must be positive")

        if self.ingestion.max_files < 1:
            errors.append("ingestion.max_files must be at least 1")

        return errors


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "")
    if not raw:
        return int(default)
    try:
        return int(raw)
    except ValueError:
        return int(default)  # Keep default


def load_config(config_path: Path) -> Config:
    """
    Load configuration from YAML file.

    Environment variables can override config values:
    - EXTRACTION_URL
    - EXTRACTION_AUTH_HEADER
    - EXTRACTION_TEXT_MODEL
    - EXTRACTION_VISION_MODEL
    - EXTRACTION_TIMEOUT (request timeout in seconds)
    - REDIS_URL
    - STAGING_SESSION_TTL (seconds)
    - AWS_S3_BUCKET, AWS_REGION, AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY
    - LEDGER_INTAKE_UPLOAD_DIR
    - LEDGER_INTAKE_DB
    """
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    # Extraction service
    extraction_data = data.get("extraction", {})
    extraction = ExtractionServiceConfig(
        base_url=os.environ.get(
            "EXTRACTION_URL", extraction_data.get("base_url", "http://localhost:11434")
        ),
        auth_header=os.environ.get("EXTRACTION_AUTH_HEADER", extraction_data.get("auth_header")),
        text_model=os.environ.get(
            "EXTRACTION_TEXT_MODEL",
            extraction_data.get("text_model", "qwen2.5:7b-instruct-q4_K_M"),
        ),
        vision_model=os.environ.get(
            "EXTRACTION_VISION_MODEL",
            extraction_data.get("vision_model", "llama3.2-vision:11b"),
        ),
        timeout_seconds=_env_int(
            "EXTRACTION_TIMEOUT", extraction_data.get("timeout_seconds", 60)
        ),
        max_concurrent=extraction_data.get("max_concurrent", 2),
    )

    # Staging
    staging_data = data.get("staging", {})
    staging = StagingConfig(
        redis_url=os.environ.get("REDIS_URL", staging_data.get("redis_url")),
        session_ttl_seconds=_env_int(
            "STAGING_SESSION_TTL", staging_data.get("session_ttl_seconds", 3600)
        ),
        sweep_interval_seconds=staging_data.get("sweep_interval_seconds", 300),
        key_prefix=staging_data.get("key_prefix", "bulk-import:"),
    )

    # Blob storage
    storage_data = data.get("storage", {})
    storage = StorageConfig(
        s3_bucket=os.environ.get(
            "AWS_S3_BUCKET", storage_data.get("s3_bucket", "ledger-intake-attachments")
        ),
        s3_region=os.environ.get("AWS_REGION", storage_data.get("s3_region", "us-east-1")),
        aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID"),
        aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY"),
        local_upload_dir=Path(
            os.environ.get(
                "LEDGER_INTAKE_UPLOAD_DIR", storage_data.get("local_upload_dir", "uploads")
            )
        ),
    )

    # Ingestion
    ingestion_data = data.get("ingestion", {})
    ingestion = IngestionConfig(
        max_files=ingestion_data.get("max_files", 10),
    )

    records_db = os.environ.get(
        "LEDGER_INTAKE_DB", data.get("records_db_path", "data/records.db")
    )

    return Config(
        extraction=extraction,
        staging=staging,
        storage=storage,
        ingestion=ingestion,
        records_db_path=Path(records_db),
    )


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# Ledger Intake Configuration
#
# Secrets (auth header, AWS keys) should be provided via environment variables.

# External extraction service (Ollama-compatible /api/chat)
extraction:
  base_url: "http://localhost:11434"       # localhost, LAN, or remote
  auth_header: null                         # Optional auth header for proxied deployments
  text_model: "qwen2.5:7b-instruct-q4_K_M"  # Used for PDF text
  vision_model: "llama3.2-vision:11b"       # Used for images
  timeout_seconds: 60
  max_concurrent: 2                         # Max concurrent extraction requests

# Staging store for uploaded batches awaiting review
staging:
  redis_url: null                          # e.g. redis://localhost:6379/0 (null = in-process)
  session_ttl_seconds: 3600                # Sessions expire after one hour
  sweep_interval_seconds: 300              # In-memory expiry sweep
  key_prefix: "bulk-import:"

# Attachment storage (S3 when AWS credentials are set, local disk otherwise)
storage:
  s3_bucket: "ledger-intake-attachments"
  s3_region: "us-east-1"
  local_upload_dir: "uploads"

ingestion:
  max_files: 10                            # Files per upload batch

# Permanent record database path
records_db_path: "data/records.db"
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
