"""
Exception hierarchy for the job queue core
"""
from typing import Optional


class JobQueueError(Exception):
    """Base class for every error raised by this package"""


class DatabaseError(JobQueueError):
    """
    A backend failure during normal operation.

    The backend's own message is kept in ``message`` so it can be logged as is.
    """

    def __init__(self, message: str, *, statement: Optional[str] = None, original: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.statement = statement
        self.original = original


class DatabaseConnectionError(DatabaseError):
    """No backend reachable at startup"""


class MigrationError(DatabaseError):
    def __init__(self, name: str, message: str, *, original: Optional[BaseException] = None):
        super().__init__(f"Migration {name} failed: {message}", original=original)
        self.name = name


class JobNotFoundError(JobQueueError):
    def __init__(self, job_id: str):
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id


class InvalidJobStateError(JobQueueError):
    def __init__(self, job_id: str, status: str, action: str):
        super().__init__(f"Cannot {action} job {job_id} with status '{status}'")
        self.job_id = job_id
        self.status = status
        self.action = action


class HandlerNotRegisteredError(JobQueueError):
    """Dispatch failure that retrying cannot fix"""

    def __init__(self, job_type: str):
        super().__init__(f"No handler registered for job type: {job_type}")
        self.job_type = job_type


class HandlerTimeoutError(JobQueueError):
    def __init__(self, job_type: str, timeout: float):
        super().__init__(f"Handler for job type '{job_type}' timed out after {timeout:g}s")
        self.job_type = job_type
        self.timeout = timeout
