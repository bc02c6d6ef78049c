"""
Extractor router - chooses the extraction strategy for an uploaded file.
"""

import logging
from typing import Optional

from ..errors import UnsupportedFileTypeError
from ..extraction_service import ExtractionServiceClient
from ..schemas import ExtractedRecord
from .base import BaseExtractor
from .document import DocumentExtractor, ImageExtractor, PdfExtractor
from .tabular import CSVExtractor, SpreadsheetExtractor

logger = logging.getLogger(__name__)


class ExtractorRouter:
    """
    Routes a file to the extractor that accepts its MIME type or extension.

    Tries extractors in priority order:
    1. PDF text layer (extraction service)
    2. Images (extraction service, vision request)
    3. CSV exports
    4. Spreadsheets (first sheet)
    """

    def __init__(self, client: ExtractionServiceClient):
        """Initialize with default extractors."""
        document_extractor = DocumentExtractor(client)
        self.extractors: list[BaseExtractor] = [
            PdfExtractor(document_extractor),
            ImageExtractor(document_extractor),
            CSVExtractor(),
            SpreadsheetExtractor(),
        ]
        # Sort by priority (highest first)
        self.extractors.sort(key=lambda e: -e.priority)

    def select(self, mime_type: Optional[str], file_name: Optional[str]) -> BaseExtractor:
        """
        Pick the extractor for a file.

        Raises:
            UnsupportedFileTypeError: No extractor accepts the file
        """
        for extractor in self.extractors:
            if extractor.can_extract(mime_type, file_name):
                return extractor
        raise UnsupportedFileTypeError(mime_type, file_name)

    def extract(
        self, data: bytes, mime_type: Optional[str], file_name: Optional[str] = None
    ) -> list[ExtractedRecord]:
        """
        Extract candidate records from one file.

        Raises:
            ExtractionError: The file as a whole could not be processed
        """
        extractor = self.select(mime_type, file_name)
        logger.debug("Routing %s (%s) to %s extractor", file_name, mime_type, extractor.name)
        return extractor.extract(data, mime_type)
