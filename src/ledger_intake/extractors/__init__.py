"""
Extractors for turning uploaded files into candidate records.
"""

from .base import BaseExtractor
from .document import DocumentExtractor, ImageExtractor, PdfExtractor, extract_pdf_text
from .router import ExtractorRouter
from .tabular import (
    COLUMN_ALIASES,
    CSVExtractor,
    SpreadsheetExtractor,
    parse_csv,
    parse_spreadsheet,
)

__all__ = [
    "COLUMN_ALIASES",
    "BaseExtractor",
    "CSVExtractor",
    "DocumentExtractor",
    "ExtractorRouter",
    "ImageExtractor",
    "PdfExtractor",
    "SpreadsheetExtractor",
    "extract_pdf_text",
    "parse_csv",
    "parse_spreadsheet",
]
