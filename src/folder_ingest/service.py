"""
Transport-agnostic service facade and component wiring.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from sqlalchemy.engine import Engine

from folder_ingest.config_models import IngestSettings
from folder_ingest.config_store import JsonConfigStore
from folder_ingest.counter import RecordCounter
from folder_ingest.database import ImportLog, create_db_engine, init_db
from folder_ingest.folders import FolderManager
from folder_ingest.ingestion import FileIngestionService
from folder_ingest.log_store import ImportLogStore
from folder_ingest.models import FolderKind, JobStatus, LogStatus
from folder_ingest.observability import ObservabilityManager
from folder_ingest.orchestrator import JobOrchestrator, resolve_config_id
from folder_ingest.persistence import HandlerRegistry, default_handler_registry
from folder_ingest.pipeline import IngestionPipeline
from folder_ingest.progress import JobProgress, JobProgressTracker, JobResult, JobResultTracker
from folder_ingest.registry import MappingRegistry

logger = logging.getLogger(__name__)


class IngestService:
    """Single entry point used by the CLI (or any other front end)."""

    def __init__(
        self,
        settings: IngestSettings,
        engine: Optional[Engine] = None,
        observability: Optional[ObservabilityManager] = None,
        handlers: Optional[HandlerRegistry] = None,
    ):
        self.settings = settings
        self.observability = observability or ObservabilityManager()
        self.engine = engine or create_db_engine(settings.database_url)
        self.session_factory = init_db(self.engine)

        self.config_store = JsonConfigStore(Path(settings.config_dir))
        self.registry = MappingRegistry(self.config_store)
        self.handlers = handlers or default_handler_registry(self.session_factory)
        self.log_store = ImportLogStore(self.session_factory, flush_every=settings.log_flush_every)
        self.folders = FolderManager(self.config_store)
        self.pipeline = IngestionPipeline(self.log_store, self.observability)
        self.ingestion = FileIngestionService(self.registry, self.handlers, self.pipeline)
        self.orchestrator = JobOrchestrator(
            folders=self.folders,
            counter=RecordCounter(self.registry),
            ingestion=self.ingestion,
            progress=JobProgressTracker(),
            results=JobResultTracker(),
            observability=self.observability,
            max_workers=settings.max_concurrent_jobs,
            default_config_id=settings.default_config_id,
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
        return False

    def _config_id(self, config_id: Optional[str]) -> str:
        return resolve_config_id(config_id, self.settings.default_config_id)

    # Jobs

    def start_job(self, config_id: Optional[str] = None) -> str:
        return self.orchestrator.start_job(config_id)

    def run_job(self, job_id: str, config_id: Optional[str] = None) -> JobStatus:
        return self.orchestrator.run_job(job_id, config_id)

    def launch(self, config_id: Optional[str] = None) -> str:
        return self.orchestrator.launch(config_id)

    def wait(self, job_id: str, timeout: Optional[float] = None) -> Optional[JobStatus]:
        return self.orchestrator.wait(job_id, timeout)

    def get_progress(self, job_id: str) -> Optional[JobProgress]:
        return self.orchestrator.progress.get(job_id)

    def get_result(self, job_id: str) -> Optional[JobResult]:
        return self.orchestrator.results.get(job_id)

    def purge_completed(self, max_age_seconds: float) -> List[str]:
        return self.orchestrator.purge_completed(max_age_seconds)

    # Folders

    def save_inbound(self, data: bytes, file_name: str, config_id: Optional[str] = None) -> Path:
        return self.folders.save_inbound(self._config_id(config_id), data, file_name)

    def list_folder(self, folder: Union[FolderKind, str], config_id: Optional[str] = None) -> List[str]:
        return self.folders.list_folder(self._config_id(config_id), folder)

    def folder_status(self, config_id: Optional[str] = None) -> Dict[str, List[str]]:
        return self.folders.folder_status(self._config_id(config_id))

    def delete_inbound(self, file_name: str, config_id: Optional[str] = None) -> bool:
        return self.folders.delete_inbound(self._config_id(config_id), file_name)

    def delete_all_inbound(self, config_id: Optional[str] = None) -> List[str]:
        return self.folders.delete_all_inbound(self._config_id(config_id))

    # Import logs

    def list_logs(self) -> List[ImportLog]:
        return self.log_store.list_logs()

    def get_log(self, log_id: int) -> ImportLog:
        return self.log_store.get_log(log_id)

    def search_logs(self, file_name: Optional[str] = None,
                    status: Optional[Union[LogStatus, str]] = None) -> List[ImportLog]:
        return self.log_store.search_logs(file_name, status)

    def shutdown(self, wait: bool = True) -> None:
        self.orchestrator.shutdown(wait=wait)
