"""
Streaming CSV record reader.
"""

import csv
import itertools
import logging
from pathlib import Path
from typing import Dict, Optional

from folder_ingest.exceptions import (
    ErrorCode,
    RecordValidationError,
    SchemaValidationError,
    StreamProcessingError,
)
from folder_ingest.models import CsvSchema
from folder_ingest.readers.base import Record, RecordReader

logger = logging.getLogger(__name__)

DELIMITER_CANDIDATES = (',', ';', '\t', '|')


def detect_delimiter(line: str, configured: str) -> Optional[str]:
    """Return a candidate delimiter strictly more frequent than the configured one.

    Returns None when the configured delimiter is at least as frequent as every
    other candidate (including a line with no delimiter at all).
    """
    configured_count = line.count(configured)
    best, best_count = None, configured_count
    for candidate in DELIMITER_CANDIDATES:
        if candidate == configured:
            continue
        count = line.count(candidate)
        if count > best_count:
            best, best_count = candidate, count
    return best


def _display(delimiter: str) -> str:
    return '\\t' if delimiter == '\t' else delimiter


class CsvRecordReader(RecordReader):
    """Reads a CSV file according to its schema, one record per non-empty line.

    Structural checks run on open: delimiter detection on the first non-blank
    line, then (with a header) expected and required header presence. Any
    failure raises SchemaValidationError before a record is produced.

    Values are trimmed. With a header, fields are located by header name;
    without one, by 0-based index. A field without an index in a header-less
    file fails each record with MISSING_COLUMN while iteration continues.
    """

    def __init__(self, file_path: Path, schema: CsvSchema, encoding: str = 'utf-8-sig'):
        super().__init__(file_path)
        self.schema = schema
        self._header_index: Dict[str, int] = {}

        self._fh = open(self.file_path, 'r', encoding=encoding, newline='')
        try:
            self._rows = self._open()
        except Exception:
            self.close()
            raise

    def _open(self):
        schema = self.schema
        first = None
        for line in self._fh:
            if line.strip():
                first = line
                break

        if first is None:
            if schema.has_header:
                raise SchemaValidationError(f"CSV file is empty, header row expected: {self.file_path.name}")
            return iter(())

        detected = detect_delimiter(first, schema.delimiter)
        if detected is not None:
            raise SchemaValidationError(
                f"CSV delimiter mismatch: configured '{_display(schema.delimiter)}' "
                f"but file uses '{_display(detected)}'"
            )

        rows = csv.reader(itertools.chain([first], self._fh), delimiter=schema.delimiter)

        if schema.has_header:
            header = [cell.strip() for cell in next(rows)]
            self._header_index = {}
            for idx, name in enumerate(header):
                self._header_index.setdefault(name, idx)
            self._validate_header()

        return rows

    def _validate_header(self) -> None:
        expected = [f.header for f in self.schema.fields if f.header and f.header.strip()]
        if expected and not any(h in self._header_index for h in expected):
            raise SchemaValidationError(
                f"CSV header does not match mapping: none of the expected headers "
                f"({', '.join(expected)}) found",
                code=ErrorCode.UNEXPECTED_COLUMN,
            )

        for fld in self.schema.fields:
            if not fld.required:
                continue
            if not (fld.header and fld.header.strip()):
                raise SchemaValidationError(
                    f"CSV mapping error: required column has no 'header' value: {fld.name}"
                )
            if fld.header not in self._header_index:
                raise SchemaValidationError(
                    f"Required column missing in CSV header: '{fld.header}'",
                    code=ErrorCode.MISSING_COLUMN,
                )

    def _read_next(self) -> Optional[Record]:
        try:
            for row in self._rows:
                # blank line; a row of bare delimiters is still a record
                if len(row) <= 1 and not (row[0].strip() if row else ''):
                    continue
                self.records_read += 1
                return self._to_record(row)
        except (csv.Error, UnicodeDecodeError) as e:
            raise StreamProcessingError(
                f"CSV read error in {self.file_path.name} after record {self.records_read}: {e}"
            ) from e
        return None

    def _to_record(self, row) -> Record:
        record: Record = {}
        for fld in self.schema.fields:
            if self.schema.has_header:
                idx = self._header_index.get(fld.header) if fld.header else None
            else:
                idx = fld.index
                if idx is None:
                    raise RecordValidationError(
                        ErrorCode.MISSING_COLUMN, fld.name, self.records_read,
                        f"CSV mapping needs 'index' when has_header=false for field: {fld.name}"
                    )
            record[fld.name] = row[idx].strip() if idx is not None and idx < len(row) else None
        return record
