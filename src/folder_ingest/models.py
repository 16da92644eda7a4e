"""
Data models and structures for folder ingestion.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class FileFormat(str, Enum):
    """Supported inbound file formats."""
    CSV = "csv"
    XML = "xml"


class FolderKind(str, Enum):
    """The four lifecycle folders of a configuration."""
    INBOUND = "in"
    TREATMENT = "treatment"
    BACKUP = "backup"
    FAILED = "failed"


class Outcome(str, Enum):
    """Result of processing one file, decides where it is relocated."""
    SUCCESS = "success"
    FAILURE = "failure"


class LineStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class LogStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    PARTIALLY_TRAITED = "PARTIALLY_TRAITED"


class JobStatus(str, Enum):
    RUNNING = "RUNNING"
    FINISHED = "FINISHED"
    FAILED = "FAILED"


SUPPORTED_EXTENSIONS = (".csv", ".xml")


@dataclass
class FieldRule:
    """Validation rule for one logical field."""
    name: str
    type: str = "STRING"
    required: bool = False
    nullable: bool = True
    pattern: Optional[str] = None


@dataclass
class CsvFieldRule(FieldRule):
    """CSV rule: located by header name, or by 0-based index without header."""
    header: Optional[str] = None
    index: Optional[int] = None


@dataclass
class XmlFieldRule(FieldRule):
    """XML rule: located by child tag name inside the record element."""
    tag: Optional[str] = None


@dataclass
class CsvSchema:
    """Technical CSV schema used by the reader and the pipeline."""
    delimiter: str = ","
    has_header: bool = True
    fields: List[CsvFieldRule] = field(default_factory=list)
    duplicate_check: List[str] = field(default_factory=list)

    format = FileFormat.CSV


@dataclass
class XmlSchema:
    """Technical XML schema used by the reader and the pipeline."""
    root_element: str = ""
    record_element: str = ""
    fields: List[XmlFieldRule] = field(default_factory=list)
    duplicate_check: List[str] = field(default_factory=list)

    format = FileFormat.XML


def derive_log_status(success_lines: int, failed_lines: int) -> LogStatus:
    """Aggregate import log status from its line counters.

    All lines succeeded -> SUCCESS, all failed -> FAILED, a mix ->
    PARTIALLY_TRAITED. A file without any line is FAILED.
    """
    if success_lines > 0 and failed_lines == 0:
        return LogStatus.SUCCESS
    if success_lines == 0 and failed_lines > 0:
        return LogStatus.FAILED
    if success_lines > 0:
        return LogStatus.PARTIALLY_TRAITED
    return LogStatus.FAILED
