"""
Exception hierarchy for the intake pipeline.

Per-unit errors (one file, one record) are caught by the orchestrator and the
committer and reported next to the successes. Whole-operation errors
(InvalidRequestError, SessionNotFoundError) are raised to the caller before
any side effect happens.
"""


class IntakeError(Exception):
    """Base exception for all intake errors."""

    pass


class InvalidRequestError(IntakeError):
    """The caller sent a request that can never succeed (client error)."""

    pass


class NoFilesError(InvalidRequestError):
    """An upload batch contained no files."""

    def __init__(self) -> None:
        super().__init__("No files uploaded")


class TooManyFilesError(InvalidRequestError):
    """An upload batch exceeded the configured file cap."""

    def __init__(self, count: int, max_files: int):
        self.count = count
        self.max_files = max_files
        super().__init__(f"Maximum {max_files} files allowed per upload (got {count})")


class SessionNotFoundError(IntakeError):
    """Session is missing, expired, or owned by another user.

    The three cases are deliberately indistinguishable to the caller.
    """

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__("Session not found or expired")


class ExtractionError(IntakeError):
    """Base class for failures while turning one file into records."""

    pass


class UnsupportedFileTypeError(ExtractionError):
    """No extractor accepts the file's MIME type or extension."""

    def __init__(self, mime_type: str | None, file_name: str | None = None):
        self.mime_type = mime_type
        self.file_name = file_name
        super().__init__(f"Unsupported file type: {mime_type}")


class PdfTextError(ExtractionError):
    """A PDF could not be read or has no extractable text layer."""

    pass


class TabularParseError(ExtractionError):
    """A CSV or spreadsheet file could not be decoded at all."""

    pass


class ExtractionServiceError(ExtractionError):
    """The external extraction service could not be reached or refused us.

    Raised for transport failures, timeouts and HTTP error statuses
    (including authentication failures). Malformed *responses* are not
    errors; they become low-confidence records instead.
    """

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class RecordValidationError(IntakeError):
    """A permanent record failed validation and was not created."""

    pass


class AttachmentError(IntakeError):
    """Storing a file or its attachment row failed."""

    pass
