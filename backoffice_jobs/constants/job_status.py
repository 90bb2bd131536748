from enum import Enum


class JobStatus(Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"
    cancelled = "cancelled"


# Statuses the runner may select; a failed job is only eligible while retry_count < max_retries
DISPATCHABLE_STATUSES = (JobStatus.pending.value, JobStatus.failed.value)

TERMINAL_STATUSES = (JobStatus.completed.value, JobStatus.cancelled.value)
