"""
Async front for the job orchestrator.

Jobs run in the orchestrator's own thread pool, so awaiting them never blocks
the event loop.

Example:
    >>> import asyncio
    >>> job_id, status = asyncio.run(start_and_run_async(orchestrator, "EMPLOYEES"))
"""

import asyncio
import logging
from typing import Optional, Tuple

from folder_ingest.models import JobStatus
from folder_ingest.orchestrator import JobOrchestrator

logger = logging.getLogger(__name__)


async def run_job_async(orchestrator: JobOrchestrator, job_id: str,
                        config_id: Optional[str] = None) -> JobStatus:
    """Await the run of an already started job."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(orchestrator.executor, orchestrator.run_job, job_id, config_id)


async def start_and_run_async(orchestrator: JobOrchestrator,
                              config_id: Optional[str] = None) -> Tuple[str, JobStatus]:
    """Start a job (record counting runs off the loop too) and await its end."""
    loop = asyncio.get_running_loop()
    job_id = await loop.run_in_executor(None, orchestrator.start_job, config_id)
    logger.info(f"Job {job_id} started asynchronously")
    status = await run_job_async(orchestrator, job_id, config_id)
    return job_id, status
