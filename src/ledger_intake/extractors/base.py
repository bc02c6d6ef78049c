"""
Base extractor interface.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..schemas import ExtractedRecord


class BaseExtractor(ABC):
    """
    Base class for all extractors.

    Each extractor implements one source format:
    - CSV exports
    - Spreadsheets (first sheet only)
    - PDF text layers (via the extraction service)
    - Images (via the extraction service, vision request)
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Extractor name for logging and provenance."""
        pass

    @property
    @abstractmethod
    def priority(self) -> int:
        """
        Priority for extractor selection.
        Higher = tried first when several accept the same file.
        """
        pass

    @abstractmethod
    def can_extract(self, mime_type: Optional[str], file_name: Optional[str]) -> bool:
        """
        Check if this extractor handles the declared type.

        Args:
            mime_type: MIME type declared by the uploader
            file_name: Original file name (extension fallback)

        Returns:
            True if this extractor should be used
        """
        pass

    @abstractmethod
    def extract(self, data: bytes, mime_type: Optional[str] = None) -> list[ExtractedRecord]:
        """
        Extract candidate records from file bytes.

        Tabular extractors return one record per accepted row; document
        extractors always return exactly one record.

        Raises:
            ExtractionError: The file as a whole could not be processed
        """
        pass


def has_extension(file_name: Optional[str], *extensions: str) -> bool:
    """Case-insensitive extension check ("report.CSV" matches ".csv")."""
    if not file_name:
        return False
    lowered = file_name.lower()
    return any(lowered.endswith(ext) for ext in extensions)
