"""
Base handler class for all job handlers
Provides common functionality and interface
"""

from abc import ABC, abstractmethod
from typing import Any

from backoffice_jobs.core.setup_logger import worker_logger
from backoffice_jobs.models.jobs_model import Job


class BaseJobHandler(ABC):
    """
    Base class for all job handlers
    All handlers should inherit from this class

    Handlers read the job but never write its queue bookkeeping; the runner
    owns status, retry_count and the timestamps.
    """

    def __init__(self):
        self.logger = worker_logger

    async def __call__(self, job: Job) -> Any:
        return await self.execute(job)

    @abstractmethod
    async def execute(self, job: Job) -> Any:
        """
        Execute the job handler

        Args:
            job: The claimed job, payload already decoded

        Returns:
            A JSON-serializable result, stored on the job
        """
        pass

    @property
    @abstractmethod
    def job_type(self) -> str:
        """Return the job type this handler processes"""
        pass
