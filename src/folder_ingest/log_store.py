"""
Durable import log: one ImportLog per file, one detail per processed record.

Counters are maintained by add_line(); details are buffered and written every
``flush_every`` lines (0 = only when the log is finalized).
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload, sessionmaker

from folder_ingest.database import ImportLog, ImportLogDetail
from folder_ingest.exceptions import LogNotFoundError
from folder_ingest.models import LineStatus, LogStatus, derive_log_status

logger = logging.getLogger(__name__)


@dataclass
class ImportLogHandle:
    """In-flight import log of one file."""
    log_id: int
    file_name: str
    total_lines: int = 0
    success_lines: int = 0
    failed_lines: int = 0
    status: LogStatus = LogStatus.IN_PROGRESS
    pending: List[ImportLogDetail] = field(default_factory=list)


class ImportLogStore:
    """SQLAlchemy-backed import log store."""

    def __init__(self, session_factory: sessionmaker, flush_every: int = 500):
        self.session_factory = session_factory
        self.flush_every = flush_every

    def start_log(self, file_name: str) -> ImportLogHandle:
        with self.session_factory() as session:
            with session.begin():
                log = ImportLog(
                    file_name=file_name,
                    status=LogStatus.IN_PROGRESS.value,
                    created_at=datetime.now(),
                    total_lines=0,
                    success_lines=0,
                    failed_lines=0,
                )
                session.add(log)
                session.flush()
                log_id = log.id
        logger.debug(f"Import log {log_id} started for {file_name}")
        return ImportLogHandle(log_id=log_id, file_name=file_name)

    def add_line(self, handle: ImportLogHandle, line_number: int,
                 status: LineStatus, detail: Optional[str] = None) -> None:
        handle.total_lines += 1
        if status == LineStatus.SUCCESS:
            handle.success_lines += 1
        else:
            handle.failed_lines += 1

        handle.pending.append(ImportLogDetail(
            log_id=handle.log_id,
            line_number=line_number,
            status=LineStatus(status).value,
            detail_problem=detail,
        ))

        if self.flush_every and len(handle.pending) >= self.flush_every:
            self.flush(handle)

    def flush(self, handle: ImportLogHandle) -> None:
        """Write buffered details and the current counters."""
        with self.session_factory() as session:
            with session.begin():
                log = session.get(ImportLog, handle.log_id)
                if log is None:
                    raise LogNotFoundError(f"LogChargement not found with id: {handle.log_id}")
                session.add_all(handle.pending)
                log.total_lines = handle.total_lines
                log.success_lines = handle.success_lines
                log.failed_lines = handle.failed_lines
                log.status = handle.status.value
        handle.pending = []

    def finalize_log(self, handle: ImportLogHandle) -> LogStatus:
        """Flush remaining details and store the status derived from the counters."""
        handle.status = derive_log_status(handle.success_lines, handle.failed_lines)
        self.flush(handle)
        logger.info(
            f"Import log {handle.log_id} ({handle.file_name}): {handle.status.value} "
            f"total={handle.total_lines} ok={handle.success_lines} ko={handle.failed_lines}"
        )
        return handle.status

    # Read side

    def get_log(self, log_id: int) -> ImportLog:
        with self.session_factory() as session:
            stmt = select(ImportLog).options(selectinload(ImportLog.details)).where(ImportLog.id == log_id)
            log = session.execute(stmt).scalar_one_or_none()
        if log is None:
            raise LogNotFoundError(f"LogChargement not found with id: {log_id}")
        return log

    def list_logs(self) -> List[ImportLog]:
        with self.session_factory() as session:
            stmt = select(ImportLog).order_by(ImportLog.id)
            return list(session.execute(stmt).scalars())

    def search_logs(self, file_name: Optional[str] = None,
                    status: Optional[Union[LogStatus, str]] = None) -> List[ImportLog]:
        """Case-insensitive file name substring and/or exact status filter."""
        stmt = select(ImportLog).order_by(ImportLog.id)
        if file_name and file_name.strip():
            stmt = stmt.where(func.lower(ImportLog.file_name).contains(file_name.lower(), autoescape=True))
        if status is not None:
            stmt = stmt.where(ImportLog.status == LogStatus(status).value)
        with self.session_factory() as session:
            return list(session.execute(stmt).scalars())
