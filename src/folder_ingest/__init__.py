"""
Folder Ingest package.
"""

__version__ = "1.0.0"

from folder_ingest.casting import cast_value, safe_text
from folder_ingest.config_models import FileReaderConfig, IngestSettings
from folder_ingest.exceptions import ErrorCode, FileProcessingError, RecordValidationError
from folder_ingest.models import CsvSchema, FieldRule, JobStatus, LogStatus, XmlSchema
from folder_ingest.service import IngestService
from folder_ingest.validators import validate_field_value, validate_schema

__all__ = [
    "FileReaderConfig",
    "IngestSettings",
    "IngestService",
    "ErrorCode",
    "FileProcessingError",
    "RecordValidationError",
    "CsvSchema",
    "XmlSchema",
    "FieldRule",
    "JobStatus",
    "LogStatus",
    "safe_text",
    "cast_value",
    "validate_field_value",
    "validate_schema",
]
