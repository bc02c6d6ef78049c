"""
Document extractor for receipts and invoices (PDF text layer, images).

Both paths delegate field extraction to the external extraction service and
always return exactly one record per file:
- PDF: the embedded text layer is read with pdfplumber (no OCR fallback)
- Image: the bytes are sent as a vision request

An unparseable reply yields an empty low-confidence record carrying the raw
reply for diagnosis. Only service/transport failures and unreadable PDFs
raise.
"""

import io
import logging
from typing import Optional

import pdfplumber

from ..errors import PdfTextError
from ..extraction_service import ExtractionServiceClient, ServiceReply, parse_extraction_response
from ..normalizer import record_from_extracted_fields
from ..schemas import Confidence, ExtractedRecord, ParseFailure
from .base import BaseExtractor, has_extension

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"
IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".bmp", ".tif", ".tiff")


def extract_pdf_text(data: bytes) -> str:
    """
    Read the embedded text layer of a PDF.

    Raises:
        PdfTextError: The PDF cannot be opened or no page yields text
    """
    pages_text: list[str] = []
    try:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            for page in pdf.pages:
                text = page.extract_text()
                if text and text.strip():
                    pages_text.append(text)
    except Exception as e:
        # pdfminer raises its own syntax errors for damaged files
        raise PdfTextError(f"Failed to read PDF: {e}") from e

    if not pages_text:
        raise PdfTextError("PDF has no extractable text layer")

    logger.debug("Extracted text from %d PDF pages", len(pages_text))
    return "\n\n".join(pages_text)


def record_from_reply(reply: ServiceReply) -> ExtractedRecord:
    """Turn a service reply into the single record of a document."""
    parsed = parse_extraction_response(reply.content)

    if isinstance(parsed, ParseFailure):
        logger.warning(
            "Unparseable %s extraction reply from %s: %s", reply.modality, reply.model, parsed.reason
        )
        return ExtractedRecord(
            confidence=Confidence.LOW,
            raw_response={"error": parsed.reason, "response_text": parsed.response_text},
        )

    return record_from_extracted_fields(parsed)


class DocumentExtractor:
    """Extracts one candidate record from a receipt or invoice document."""

    def __init__(self, client: ExtractionServiceClient):
        self.client = client

    def extract_from_pdf(self, data: bytes) -> ExtractedRecord:
        """
        Extract a record from a PDF's text layer.

        Raises:
            PdfTextError: No text layer
            ExtractionServiceError: Service unreachable or refused the request
        """
        text = extract_pdf_text(data)
        reply = self.client.extract_text(text)
        return record_from_reply(reply)

    def extract_from_image(self, data: bytes, mime_type: str) -> ExtractedRecord:
        """
        Extract a record from a receipt/invoice image.

        Raises:
            ExtractionServiceError: Service unreachable or refused the request
        """
        reply = self.client.extract_image(data, mime_type)
        return record_from_reply(reply)


class PdfExtractor(BaseExtractor):
    """PDF documents with an embedded text layer."""

    def __init__(self, document_extractor: DocumentExtractor):
        self.document_extractor = document_extractor

    @property
    def name(self) -> str:
        return "pdf"

    @property
    def priority(self) -> int:
        return 80

    def can_extract(self, mime_type: Optional[str], file_name: Optional[str]) -> bool:
        return (mime_type or "").lower() == PDF_MIME_TYPE or has_extension(file_name, ".pdf")

    def extract(self, data: bytes, mime_type: Optional[str] = None) -> list[ExtractedRecord]:
        return [self.document_extractor.extract_from_pdf(data)]


class ImageExtractor(BaseExtractor):
    """Photos and scans of receipts (any image/* type)."""

    def __init__(self, document_extractor: DocumentExtractor):
        self.document_extractor = document_extractor

    @property
    def name(self) -> str:
        return "image"

    @property
    def priority(self) -> int:
        return 70

    def can_extract(self, mime_type: Optional[str], file_name: Optional[str]) -> bool:
        return (mime_type or "").lower().startswith("image/") or has_extension(
            file_name, *IMAGE_EXTENSIONS
        )

    def extract(self, data: bytes, mime_type: Optional[str] = None) -> list[ExtractedRecord]:
        return [self.document_extractor.extract_from_image(data, mime_type or "image/jpeg")]
