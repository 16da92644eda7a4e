"""
In-memory job progress and job result trackers.

One writer (the job's processing task) and any number of pollers share these
trackers; every access goes through the tracker lock and readers receive
snapshot copies.
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from folder_ingest.models import JobStatus

logger = logging.getLogger(__name__)


class JobProgress(BaseModel):
    """Progress snapshot of a job."""
    job_id: str
    status: JobStatus
    total_records: int = Field(..., ge=0)
    processed_records: int = Field(..., ge=0)
    percent: int = Field(..., ge=0, le=100)
    time_left: Optional[int] = Field(None, description="Estimated seconds remaining, None when unknown")
    started_at: datetime
    elapsed_seconds: int = Field(..., ge=0)


class FailedFile(BaseModel):
    file_name: str
    detail: str


class JobResult(BaseModel):
    """Files treated and failed by a job, in processing order."""
    job_id: str
    files_treated: List[str] = Field(default_factory=list)
    files_failed: List[FailedFile] = Field(default_factory=list)


def compute_percent(status: JobStatus, total: int, processed: int) -> int:
    if total <= 0:
        return 100 if status == JobStatus.FINISHED else 0
    return max(0, min(100, processed * 100 // total))


def compute_time_left(status: JobStatus, total: int, processed: int, elapsed_seconds: int) -> Optional[int]:
    """ceil(remaining / (processed / elapsed)), only while running with a known rate."""
    if status != JobStatus.RUNNING or total <= 0 or processed <= 0 or elapsed_seconds <= 0:
        return None
    remaining = total - processed
    # exact integer ceil of remaining * elapsed / processed
    return max(0, -(-(remaining * elapsed_seconds) // processed))


@dataclass
class _JobState:
    total: int
    started_at: datetime
    started_clock: float
    processed: int = 0
    status: JobStatus = JobStatus.RUNNING
    ended_clock: Optional[float] = None


class JobProgressTracker:
    """Per-job counters, status and ETA.

    Args:
        clock: Monotonic seconds source, injectable for tests
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._jobs: Dict[str, _JobState] = {}
        self._lock = threading.Lock()

    def start(self, total_records: int, job_id: Optional[str] = None) -> str:
        job_id = job_id or str(uuid.uuid4())
        with self._lock:
            self._jobs[job_id] = _JobState(
                total=max(0, int(total_records)),
                started_at=datetime.now(),
                started_clock=self.clock(),
            )
        logger.info(f"Job {job_id} started with {total_records} record(s) to process")
        return job_id

    def increment_processed(self, job_id: str, count: int = 1) -> None:
        with self._lock:
            state = self._jobs.get(job_id)
            if state is not None and state.status == JobStatus.RUNNING:
                state.processed += count

    def _terminate(self, job_id: str, status: JobStatus) -> bool:
        with self._lock:
            state = self._jobs.get(job_id)
            if state is None or state.status != JobStatus.RUNNING:
                return False
            state.status = status
            state.ended_clock = self.clock()
            return True

    def finish(self, job_id: str) -> bool:
        """Mark FINISHED; False when unknown or already terminal."""
        return self._terminate(job_id, JobStatus.FINISHED)

    def fail(self, job_id: str) -> bool:
        """Mark FAILED; False when unknown or already terminal."""
        return self._terminate(job_id, JobStatus.FAILED)

    def get(self, job_id: str) -> Optional[JobProgress]:
        with self._lock:
            state = self._jobs.get(job_id)
            if state is None:
                return None
            end = state.ended_clock if state.ended_clock is not None else self.clock()
            elapsed = max(0, int(end - state.started_clock))
            return JobProgress(
                job_id=job_id,
                status=state.status,
                total_records=state.total,
                processed_records=state.processed,
                percent=compute_percent(state.status, state.total, state.processed),
                time_left=compute_time_left(state.status, state.total, state.processed, elapsed),
                started_at=state.started_at,
                elapsed_seconds=elapsed,
            )

    def purge_completed(self, max_age_seconds: float) -> List[str]:
        """Evict terminal jobs that ended more than max_age_seconds ago; returns their ids."""
        now = self.clock()
        with self._lock:
            expired = [
                job_id for job_id, state in self._jobs.items()
                if state.ended_clock is not None and now - state.ended_clock > max_age_seconds
            ]
            for job_id in expired:
                del self._jobs[job_id]
        if expired:
            logger.debug(f"Purged {len(expired)} completed job(s)")
        return expired

    def job_ids(self) -> List[str]:
        with self._lock:
            return list(self._jobs)


@dataclass
class _ResultState:
    treated: List[str] = field(default_factory=list)
    failed: List[FailedFile] = field(default_factory=list)


class JobResultTracker:
    """Append-only per-job lists of treated and failed files."""

    def __init__(self):
        self._results: Dict[str, _ResultState] = {}
        self._lock = threading.Lock()

    def start(self, job_id: str) -> None:
        with self._lock:
            self._results[job_id] = _ResultState()

    def add_treated(self, job_id: str, file_name: str) -> None:
        with self._lock:
            state = self._results.get(job_id)
            if state is not None:
                state.treated.append(file_name)

    def add_failed(self, job_id: str, file_name: str, detail: str) -> None:
        with self._lock:
            state = self._results.get(job_id)
            if state is not None:
                state.failed.append(FailedFile(file_name=file_name, detail=detail or ""))

    def get(self, job_id: str) -> Optional[JobResult]:
        with self._lock:
            state = self._results.get(job_id)
            if state is None:
                return None
            return JobResult(
                job_id=job_id,
                files_treated=list(state.treated),
                files_failed=[f.model_copy() for f in state.failed],
            )

    def purge(self, job_id: str) -> bool:
        with self._lock:
            return self._results.pop(job_id, None) is not None
