"""
Per-file ingestion pipeline.

reader -> field validation -> duplicate checks -> persistence -> import log
line -> progress callback, for every record of one file. A failing record
never aborts the file; file-level errors raised by the reader propagate.
"""

import logging
import time
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from folder_ingest.duplicates import DbDuplicateChecker, InFileDuplicateChecker, build_duplicate_key
from folder_ingest.exceptions import ErrorCode, RecordValidationError
from folder_ingest.log_store import ImportLogStore
from folder_ingest.models import FieldRule, LineStatus
from folder_ingest.observability import ObservabilityManager
from folder_ingest.validators import validate_field_value

logger = logging.getLogger(__name__)

Persister = Callable[[Dict[str, Optional[str]]], None]
ProgressCallback = Callable[[], None]


class IngestionPipeline:
    """Runs the record loop of one file and writes its import log."""

    def __init__(self, log_store: ImportLogStore, observability: Optional[ObservabilityManager] = None,
                 progress_interval: int = 10000):
        self.log_store = log_store
        self.observability = observability or ObservabilityManager()
        self.progress_interval = progress_interval

    def validate_record(self, raw: Dict[str, Optional[str]], rules: Sequence[FieldRule],
                        line: int) -> Dict[str, Optional[str]]:
        """Validate every field; the first failure fails the record."""
        return {rule.name: validate_field_value(rule, raw.get(rule.name), line) for rule in rules}

    def process(
        self,
        file_name: str,
        records: Iterable[Dict[str, Optional[str]]],
        rules: Sequence[FieldRule],
        duplicate_check: List[str],
        persist: Persister,
        db_checker: Optional[DbDuplicateChecker] = None,
        on_record: Optional[ProgressCallback] = None,
    ) -> int:
        """Process all records of one file.

        Returns:
            Number of successfully persisted records
        """
        start = time.time()
        handle = self.log_store.start_log(file_name)
        in_file = InFileDuplicateChecker()
        iterator = iter(records)
        success = 0
        line = 0

        while True:
            try:
                raw = next(iterator)
            except StopIteration:
                break
            except RecordValidationError as e:
                # reader-side failure of one record, iteration continues
                line += 1
                self._record_line(handle, line, LineStatus.FAILED, e.detail, on_record)
                continue

            line += 1
            try:
                validated = self.validate_record(raw, rules, line)

                if duplicate_check:
                    key = build_duplicate_key(duplicate_check, validated)
                    fields = ",".join(duplicate_check)
                    if in_file.is_duplicate(key):
                        raise RecordValidationError(
                            ErrorCode.DUPLICATE_IN_FILE, fields, line,
                            f"Duplicate key in file for fields: [{', '.join(duplicate_check)}]"
                        )
                    if db_checker is not None and db_checker.exists(validated, duplicate_check):
                        raise RecordValidationError(
                            ErrorCode.DUPLICATE_IN_DB, fields, line,
                            f"Duplicate key in DB for fields: [{', '.join(duplicate_check)}]"
                        )

                persist(validated)
                success += 1
                status, detail = LineStatus.SUCCESS, None

            except RecordValidationError as e:
                status, detail = LineStatus.FAILED, e.detail
            except Exception as e:
                logger.debug(f"Technical failure on {file_name} line {line}: {e}", exc_info=True)
                status, detail = LineStatus.FAILED, f"TECHNICAL - {e}"

            self._record_line(handle, line, status, detail, on_record)

            if self.progress_interval and line % self.progress_interval == 0:
                logger.info(f"{file_name}: {line:,} records processed ({success:,} ok)")

        final_status = self.log_store.finalize_log(handle)

        tags = {"file_type": file_name.rsplit('.', 1)[-1].lower() if '.' in file_name else "none"}
        self.observability.counter("records_succeeded_total", success, tags)
        self.observability.counter("records_failed_total", line - success, tags)
        self.observability.timing("file_ingest_duration", time.time() - start, tags)

        logger.info(
            f"{file_name}: {line} record(s), {success} succeeded, {line - success} failed "
            f"-> {final_status.value}"
        )
        return success

    def _record_line(self, handle, line: int, status: LineStatus, detail: Optional[str],
                     on_record: Optional[ProgressCallback]) -> None:
        try:
            self.log_store.add_line(handle, line, status, detail)
        finally:
            if on_record is not None:
                on_record()
