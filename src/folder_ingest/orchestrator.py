"""
Job orchestration: drain the inbound folder of a configuration, one file at a time.

start_job() counts the records waiting in the inbound folder and registers the
job; run_job() dequeues, ingests and relocates files until the folder is
empty. A failing file is quarantined and the loop moves on; only an error of
the loop itself (listing, dequeue) fails the job.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Dict, List, Optional

from folder_ingest.config_models import DEFAULT_CONFIG_ID
from folder_ingest.counter import RecordCounter
from folder_ingest.exceptions import FileProcessingError
from folder_ingest.folders import FolderManager
from folder_ingest.ingestion import FileIngestionService
from folder_ingest.models import SUPPORTED_EXTENSIONS, FolderKind, JobStatus, Outcome
from folder_ingest.observability import EventType, ObservabilityManager
from folder_ingest.progress import JobProgressTracker, JobResultTracker

logger = logging.getLogger(__name__)


def resolve_config_id(config_id: Optional[str], default: str = DEFAULT_CONFIG_ID) -> str:
    """Blank configuration ids fall back to the default one."""
    return config_id.strip() if config_id and config_id.strip() else default


class JobOrchestrator:
    """Starts and runs ingestion jobs on a background thread pool.

    Jobs of the same configuration id are serialized by a per-configuration
    lock; within a job files are processed strictly one after another.
    """

    def __init__(
        self,
        folders: FolderManager,
        counter: RecordCounter,
        ingestion: FileIngestionService,
        progress: Optional[JobProgressTracker] = None,
        results: Optional[JobResultTracker] = None,
        observability: Optional[ObservabilityManager] = None,
        max_workers: int = 4,
        default_config_id: str = DEFAULT_CONFIG_ID,
    ):
        self.folders = folders
        self.counter = counter
        self.ingestion = ingestion
        self.progress = progress or JobProgressTracker()
        self.results = results or JobResultTracker()
        self.observability = observability or ObservabilityManager()
        self.default_config_id = default_config_id
        self.executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="ingest-job")
        self._futures: Dict[str, Future] = {}
        self._config_locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _config_lock(self, config_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._config_locks.get(config_id)
            if lock is None:
                lock = self._config_locks[config_id] = threading.Lock()
            return lock

    def start_job(self, config_id: Optional[str] = None) -> str:
        """Count the waiting records and register a RUNNING job.

        Returns:
            The job id
        """
        config_id = resolve_config_id(config_id, self.default_config_id)
        inbound = self.folders.ensure_folders(config_id)[FolderKind.INBOUND]
        try:
            files: List[Path] = [inbound / name for name in self.folders.list_folder(config_id, FolderKind.INBOUND)]
            total = self.counter.count_all(files, config_id)
        except FileProcessingError as e:
            logger.error(f"Failed to count total records in DATA_IN: {e}")
            total = 0

        job_id = self.progress.start(total)
        self.results.start(job_id)
        self.observability.emit_event(
            EventType.JOB_START, job_id=job_id,
            details={"config_id": config_id, "total_records": total}
        )
        return job_id

    def run_job(self, job_id: str, config_id: Optional[str] = None) -> JobStatus:
        """Drain the inbound folder; blocks until it is empty.

        Returns:
            The terminal job status
        """
        config_id = resolve_config_id(config_id, self.default_config_id)
        start = time.time()

        with self._config_lock(config_id):
            try:
                while True:
                    treatment_file = self.folders.dequeue_one_to_treatment(config_id)
                    if treatment_file is None:
                        break
                    self._process_file(job_id, config_id, treatment_file)
            except Exception as e:
                logger.error(f"Job {job_id} failed: {e}", exc_info=True)
                self.progress.fail(job_id)
                self.observability.emit_error(e, {"job_id": job_id, "config_id": config_id})
                self.observability.emit_event(EventType.JOB_FAILED, job_id=job_id, details={"error": str(e)})
                return JobStatus.FAILED

        self.progress.finish(job_id)
        duration = time.time() - start
        self.observability.timing("job_duration", duration, {"config_id": config_id})
        self.observability.emit_event(
            EventType.JOB_COMPLETE, job_id=job_id, details={"duration": f"{duration:.2f}s"}
        )
        logger.info(f"Job {job_id} finished in {duration:.2f}s")
        return JobStatus.FINISHED

    def _process_file(self, job_id: str, config_id: str, treatment_file: Path) -> None:
        name = treatment_file.name
        tags = {"config_id": config_id}

        if treatment_file.suffix.lower() not in SUPPORTED_EXTENSIONS:
            detail = f"Unsupported file type: {name}"
            logger.warning(f"{detail}, moving to failed folder")
            self._quarantine(job_id, config_id, treatment_file, detail)
            self.observability.emit_event(EventType.FILE_REJECTED, job_id=job_id, file_path=treatment_file)
            return

        self.observability.emit_event(EventType.FILE_START, job_id=job_id, file_path=treatment_file)
        file_start = time.time()
        try:
            succeeded = self.ingestion.ingest(
                treatment_file, config_id,
                on_record=lambda: self.progress.increment_processed(job_id)
            )
        except Exception as e:
            logger.error(f"Processing failed for file {name}: {e}", exc_info=True)
            self._quarantine(job_id, config_id, treatment_file, str(e))
            self.observability.counter("files_failed_total", 1, tags)
            self.observability.emit_event(
                EventType.FILE_ERROR, job_id=job_id, file_path=treatment_file, details={"error": str(e)}
            )
            return

        try:
            self.folders.relocate(config_id, treatment_file, Outcome.SUCCESS)
        except FileProcessingError as e:
            logger.error(f"Relocation to backup failed for {name}: {e}")
            self.results.add_failed(job_id, name, str(e))
            self.observability.counter("files_failed_total", 1, tags)
            return

        self.results.add_treated(job_id, name)
        self.observability.counter("files_succeeded_total", 1, tags)
        self.observability.emit_event(
            EventType.FILE_COMPLETE, job_id=job_id, file_path=treatment_file,
            details={"succeeded": succeeded, "duration": f"{time.time() - file_start:.2f}s"}
        )

    def _quarantine(self, job_id: str, config_id: str, treatment_file: Path, detail: str) -> None:
        try:
            self.folders.relocate(config_id, treatment_file, Outcome.FAILURE)
        except FileProcessingError as e:
            logger.error(f"Relocation to failed folder failed for {treatment_file.name}: {e}")
            detail = f"{detail} (relocation failed: {e})"
        self.results.add_failed(job_id, treatment_file.name, detail)

    def submit(self, job_id: str, config_id: Optional[str] = None) -> Future:
        """Run a started job on the background pool."""
        future = self.executor.submit(self.run_job, job_id, config_id)
        self._futures[job_id] = future
        return future

    def launch(self, config_id: Optional[str] = None) -> str:
        """start_job() then submit(); returns immediately with the job id."""
        job_id = self.start_job(config_id)
        self.submit(job_id, config_id)
        return job_id

    def wait(self, job_id: str, timeout: Optional[float] = None) -> Optional[JobStatus]:
        """Block until a submitted job ends; None for jobs never submitted."""
        future = self._futures.get(job_id)
        if future is None:
            return None
        return future.result(timeout=timeout)

    def purge_completed(self, max_age_seconds: float) -> List[str]:
        """Forget progress and results of jobs that ended long enough ago."""
        purged = self.progress.purge_completed(max_age_seconds)
        for job_id in purged:
            self.results.purge(job_id)
            self._futures.pop(job_id, None)
        return purged

    def shutdown(self, wait: bool = True) -> None:
        self.executor.shutdown(wait=wait)
