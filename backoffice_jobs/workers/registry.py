"""
Job Handler Registry
Maps job_type to handler callables
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from backoffice_jobs.core.logger import info
from backoffice_jobs.core.setup_logger import worker_logger
from backoffice_jobs.models.jobs_model import Job
from backoffice_jobs.workers.job_handlers.base_handler import BaseJobHandler

# async (Job) -> result, or a plain function returning the result
Handler = Callable[[Job], Union[Awaitable[Any], Any]]


class HandlerRegistry:
    """
    Registration happens once at worker startup, before the runner starts.
    Registering a type again replaces the previous handler.
    """

    def __init__(self):
        self._handlers: Dict[str, Handler] = {}

    def register(self, job_type: str, handler: Handler) -> None:
        """
        Register a handler for a job type

        Args:
            job_type: The type of job (e.g., 'menu_sync')
            handler: Callable receiving the job record
        """
        if not job_type:
            raise ValueError("job_type must be a non-empty string")
        if not callable(handler):
            raise TypeError("Handler must be callable")

        if job_type in self._handlers:
            info(worker_logger, f"Replacing handler for job_type: {job_type}")
        else:
            info(worker_logger, f"Registering handler for job_type: {job_type}")
        self._handlers[job_type] = handler

    def register_handler(self, handler: BaseJobHandler) -> None:
        """Register a handler object under its own job_type"""
        if not isinstance(handler, BaseJobHandler):
            raise TypeError("Handler must inherit from BaseJobHandler")
        self.register(handler.job_type, handler)

    def get(self, job_type: str) -> Optional[Handler]:
        return self._handlers.get(job_type)

    def job_types(self) -> List[str]:
        """Get list of all registered job types"""
        return list(self._handlers.keys())

    def __contains__(self, job_type: str) -> bool:
        return job_type in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)
