"""
Exception hierarchy for folder ingestion.

File-level problems derive from FileProcessingError and fail a whole file
(or a whole job when raised by the orchestration loop). Record-level problems
are RecordValidationError and only ever fail one line of the import log.
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Normalized error codes for record validation."""
    MISSING_COLUMN = "MISSING_COLUMN"
    UNEXPECTED_COLUMN = "UNEXPECTED_COLUMN"
    REQUIRED_FIELD_MISSING = "REQUIRED_FIELD_MISSING"
    NULL_NOT_ALLOWED = "NULL_NOT_ALLOWED"
    PATTERN_MISMATCH = "PATTERN_MISMATCH"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    DUPLICATE_IN_FILE = "DUPLICATE_IN_FILE"
    DUPLICATE_IN_DB = "DUPLICATE_IN_DB"
    XML_ROOT_MISMATCH = "XML_ROOT_MISMATCH"


class FileProcessingError(Exception):
    """Root exception for file ingestion / processing errors."""
    pass


class SchemaValidationError(FileProcessingError):
    """File does not match its mapping (CSV header, delimiter, XML root...).

    ``code`` is set when the mismatch has a normalized error code.
    """

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.code = code


class StreamProcessingError(FileProcessingError):
    """Streaming read or ingestion of a file failed."""
    pass


class ConfigurationError(FileProcessingError):
    """Unknown configuration id, missing mapping or unknown record handler."""
    pass


class InvalidFileFormatError(FileProcessingError):
    """Uploaded file is empty or has an unsupported extension."""
    pass


class InvalidFileNameError(FileProcessingError):
    """File name is not a single plain path segment."""
    pass


class FileConflictError(FileProcessingError):
    """A file with the same name already exists in the inbound folder."""
    pass


class LogNotFoundError(FileProcessingError):
    """Requested import log does not exist."""
    pass


class RecordValidationError(Exception):
    """Functional validation failure for one record.

    Carries the error code, the offending field name (or a comma separated
    list of fields for duplicate checks) and the 1-based record number.
    """

    def __init__(self, code: ErrorCode, field: Optional[str], line: int, message: str):
        super().__init__(message)
        self.code = code
        self.field = field
        self.line = line

    @property
    def detail(self) -> str:
        """Import log detail text, e.g. ``TYPE_MISMATCH - Type mismatch for 'id'``."""
        return f"{self.code.value} - {self}"
