"""
Pydantic models for strongly-typed ingestion configuration.

A FileReaderConfig is the document stored per configuration id: folder
layout, optional CSV and XML mappings, and the record handler that persists
validated records. IngestSettings holds process-wide settings.
"""

import json
import re
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_CONFIG_ID = "EMPLOYEES"


class FieldType(str, Enum):
    """Supported field data types."""
    LONG = "LONG"
    STRING = "STRING"
    LOCAL_DATE = "LOCAL_DATE"
    DECIMAL = "DECIMAL"


class BaseFieldConfig(BaseModel):
    """Field definition shared by CSV columns and XML fields."""
    order_index: Optional[int] = Field(None, description="Position of the field in the mapping")
    name: str = Field(..., min_length=1, description="Logical field name (target property)")
    type: FieldType = Field(FieldType.STRING, description="Field data type")
    required: bool = Field(False, description="Value must be present and non-blank")
    nullable: bool = Field(True, description="Blank value is accepted as null")
    pattern: Optional[str] = Field(None, description="Regex the whole value must match")

    @field_validator('pattern')
    @classmethod
    def validate_pattern(cls, pattern):
        """Ensure the pattern compiles."""
        if pattern:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid regex pattern '{pattern}': {e}")
        return pattern


class CsvColumnConfig(BaseFieldConfig):
    """CSV column: header name, or 0-based index for header-less files."""
    header: Optional[str] = Field(None, description="Header name in the CSV file")
    index: Optional[int] = Field(None, description="0-based column index", ge=0)


class XmlFieldConfig(BaseFieldConfig):
    """XML field: child tag name inside the record element."""
    tag: str = Field(..., min_length=1, description="XML tag name")


def _check_fields(fields: List[BaseFieldConfig], duplicate_check: List[str]) -> None:
    names = [f.name for f in fields]
    duplicates = [name for name in set(names) if names.count(name) > 1]
    if duplicates:
        raise ValueError(f"Duplicate field names: {', '.join(sorted(duplicates))}")
    unknown = [f for f in duplicate_check if f not in names]
    if unknown:
        raise ValueError(f"duplicate_check references unknown fields: {', '.join(unknown)}")


def _ordered(fields):
    # stable: fields without order_index keep their declared position
    return sorted(fields, key=lambda f: (f.order_index is None, f.order_index or 0))


class CsvMappingConfig(BaseModel):
    """CSV mapping configuration."""
    delimiter: str = Field(",", description="CSV delimiter character")
    has_header: bool = Field(True, description="First non-blank line is a header row")
    duplicate_check: List[str] = Field(default_factory=list, description="Fields forming the duplicate key")
    columns: List[CsvColumnConfig] = Field(..., min_length=1, description="Column definitions")

    @field_validator('delimiter')
    @classmethod
    def validate_delimiter(cls, delimiter):
        if len(delimiter) != 1:
            raise ValueError(f"delimiter must be a single character, got '{delimiter}'")
        return delimiter

    @field_validator('columns')
    @classmethod
    def order_columns(cls, columns):
        return _ordered(columns)

    @model_validator(mode='after')
    def validate_columns(self):
        _check_fields(self.columns, self.duplicate_check)
        if self.has_header:
            for col in self.columns:
                if col.required and not (col.header and col.header.strip()):
                    raise ValueError(f"Required column '{col.name}' has no 'header' value")
        return self


class XmlMappingConfig(BaseModel):
    """XML mapping configuration."""
    root_element: str = Field(..., min_length=1, description="Expected document root tag")
    record_element: str = Field(..., min_length=1, description="Tag of one record")
    duplicate_check: List[str] = Field(default_factory=list, description="Fields forming the duplicate key")
    fields: List[XmlFieldConfig] = Field(..., min_length=1, description="Field definitions")

    @field_validator('fields')
    @classmethod
    def order_fields(cls, fields):
        return _ordered(fields)

    @model_validator(mode='after')
    def validate_fields(self):
        _check_fields(self.fields, self.duplicate_check)
        return self


class FolderPathsConfig(BaseModel):
    """Lifecycle folders; relative folder names are resolved under base_dir."""
    base_dir: str = Field(..., description="Root directory of the folders")
    in_dir: str = Field("DATA_IN", description="Inbound folder")
    treatment_dir: str = Field("DATA_TREATMENT", description="In-treatment folder")
    backup_dir: str = Field("DATA_BACKUP", description="Successfully ingested files")
    failed_dir: str = Field("DATA_FAILED", description="Quarantined files")


class FileReaderConfig(BaseModel):
    """Ingestion configuration stored under one configuration id."""
    config_id: str = Field(..., min_length=1, description="Configuration id (e.g. EMPLOYEES)")
    description: Optional[str] = Field(None, description="Free text description")
    load_mode: Optional[str] = Field(None, description="Informative load mode (e.g. WEB, CLI)")
    target_type: str = Field("employee", description="Registered record handler name")
    paths: FolderPathsConfig
    csv_mapping: Optional[CsvMappingConfig] = None
    xml_mapping: Optional[XmlMappingConfig] = None

    @classmethod
    def from_dict(cls, config_dict: dict) -> "FileReaderConfig":
        """
        Create FileReaderConfig from dictionary with comprehensive validation.

        Raises:
            ValidationError: If configuration is invalid
        """
        return cls.model_validate(config_dict)

    @classmethod
    def from_json_file(cls, config_path: str) -> "FileReaderConfig":
        """
        Load and validate configuration from JSON file.

        Raises:
            ValidationError: If configuration is invalid
            FileNotFoundError: If file doesn't exist
        """
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(path, encoding='utf-8') as f:
            config_dict = json.load(f)

        return cls.from_dict(config_dict)


class IngestSettings(BaseModel):
    """Process-wide settings."""
    config_dir: str = Field("configs", description="Directory of per-configuration JSON documents")
    database_url: str = Field("sqlite:///folder_ingest.db", description="SQLAlchemy database URL")
    default_config_id: str = Field(DEFAULT_CONFIG_ID, description="Configuration used when none is given")
    max_concurrent_jobs: int = Field(4, description="Background job worker threads", gt=0)
    log_flush_every: int = Field(
        500,
        description="Flush import log details every N lines (0 = on finalize only)",
        ge=0
    )

    @classmethod
    def from_dict(cls, settings_dict: Dict[str, Any]) -> "IngestSettings":
        return cls.model_validate(settings_dict)

    @classmethod
    def from_json_file(cls, settings_path: str) -> "IngestSettings":
        path = Path(settings_path)
        if not path.exists():
            raise FileNotFoundError(f"Settings file not found: {settings_path}")
        with open(path, encoding='utf-8') as f:
            return cls.from_dict(json.load(f))
