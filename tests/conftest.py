"""Test fixtures and utilities."""

import io
from datetime import date, datetime
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from openpyxl import Workbook

from ledger_intake.classifier import CategoryClassifier
from ledger_intake.config import StagingConfig, StorageConfig
from ledger_intake.extraction_service import ExtractionServiceClient, ServiceReply
from ledger_intake.extractors import ExtractorRouter
from ledger_intake.ingestion import BulkImportService, ConfirmationCommitter, IngestionOrchestrator
from ledger_intake.records import RecordStore
from ledger_intake.schemas import UploadedFile
from ledger_intake.staging import MemoryStagingStore
from ledger_intake.storage import AttachmentService, LocalBlobStorage, S3BlobStorage

SAMPLE_CSV = """Date,Vendor,Amount,Description,Currency
2024-03-01,Adobe,52.99,Creative Cloud subscription,USD
2024-03-02,,10.00,Missing vendor,
2024-03-05,Uber,"1,234.50",Airport ride,eur
"""

SAMPLE_RECEIPT_JSON = """{
    "vendorName": "Office Depot",
    "amount": "45.20",
    "transactionDate": "2024-02-14",
    "description": "Printer toner",
    "invoiceNumber": "OD-99812",
    "currency": "USD",
    "lineItems": "Toner ($40.00), Paper ($5.20)",
    "confidence": "high"
}"""

TODAY = date(2024, 6, 30)

CSV_MIME = "text/csv"
XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def sample_csv_bytes() -> bytes:
    """CSV export with one invalid row in the middle."""
    return SAMPLE_CSV.encode("utf-8")


@pytest.fixture
def sample_xlsx_bytes() -> bytes:
    """Workbook with a datetime cell, a serial date and a blank vendor row."""
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(["Merchant", "Total", "TransactionDate", "Notes"])
    sheet.append(["Heroku", 25.0, datetime(2024, 1, 15), "Hosting"])
    sheet.append(["Lyft", 18.4, 45352, "Ride"])
    sheet.append([None, 99.0, datetime(2024, 1, 20), "No vendor"])
    # Second sheet is ignored
    other = workbook.create_sheet("Ignored")
    other.append(["Vendor", "Amount", "Date"])
    other.append(["Nope", 1, datetime(2024, 1, 1)])

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def temp_db(tmp_path) -> Path:
    """Temporary database path for testing."""
    return tmp_path / "records.db"


@pytest.fixture
def record_store(temp_db) -> RecordStore:
    """Record store with a fixed 'today'."""
    return RecordStore(temp_db, today=lambda: TODAY)


@pytest.fixture
def categories(record_store):
    """Seeded expense categories."""
    return [
        record_store.add_category("Software"),
        record_store.add_category("Travel"),
        record_store.add_category("Office Supplies"),
    ]


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store(fake_clock):
    store = MemoryStagingStore(clock=fake_clock)
    yield store
    store.close()


@pytest.fixture
def mock_client() -> MagicMock:
    """Extraction client returning a well-formed receipt reply."""
    client = MagicMock(spec=ExtractionServiceClient)
    client.extract_text.return_value = ServiceReply(
        content=SAMPLE_RECEIPT_JSON, model="text-model", modality="text"
    )
    client.extract_image.return_value = ServiceReply(
        content=SAMPLE_RECEIPT_JSON, model="vision-model", modality="image"
    )
    return client


@pytest.fixture
def orchestrator(mock_client, record_store, memory_store) -> IngestionOrchestrator:
    return IngestionOrchestrator(
        router=ExtractorRouter(mock_client),
        classifier=CategoryClassifier(),
        records=record_store,
        store=memory_store,
        staging_config=StagingConfig(),
    )


@pytest.fixture
def upload_dir(tmp_path) -> Path:
    return tmp_path / "uploads"


@pytest.fixture
def attachment_service(record_store, upload_dir) -> AttachmentService:
    """Attachments on local disk (no AWS credentials configured)."""
    return AttachmentService(
        records=record_store,
        s3=S3BlobStorage(StorageConfig()),
        local=LocalBlobStorage(upload_dir),
        clock=lambda: 1700000000.5,
    )


@pytest.fixture
def committer(orchestrator, record_store, attachment_service) -> ConfirmationCommitter:
    return ConfirmationCommitter(orchestrator, record_store, attachment_service)


@pytest.fixture
def service(orchestrator, committer) -> BulkImportService:
    return BulkImportService(orchestrator, committer, max_files=10)


@pytest.fixture
def csv_upload(sample_csv_bytes) -> UploadedFile:
    return UploadedFile(original_name="expenses.csv", mime_type=CSV_MIME, data=sample_csv_bytes)


@pytest.fixture
def image_upload() -> UploadedFile:
    return UploadedFile(original_name="receipt.jpg", mime_type="image/jpeg", data=b"\xff\xd8jpeg")
