from datetime import datetime
from typing import Any, Optional

from pydantic import Field, field_validator

from backoffice_jobs.constants.job_status import JobStatus, TERMINAL_STATUSES
from backoffice_jobs.models.base_model import RowModel, decode_json, ensure_utc


class Job(RowModel):
    """One row of ``sync_jobs``"""

    id: str
    tenant_id: Optional[str] = None
    job_type: str

    # Informational pointer to the domain object the job concerns
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None

    status: str = JobStatus.pending.value
    payload: Any = Field(default_factory=dict)
    result: Any = None
    error_message: Optional[str] = None

    # Retry bookkeeping
    retry_count: int = 0
    max_retries: int = 3
    priority: int = 10
    locked_by: Optional[str] = None

    scheduled_at: Optional[datetime] = None
    next_run_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("payload", mode="before")
    @classmethod
    def _decode_payload(cls, value):
        value = decode_json(value)
        return {} if value is None else value

    @field_validator("result", mode="before")
    @classmethod
    def _decode_result(cls, value):
        return decode_json(value)

    @field_validator(
        "scheduled_at", "next_run_at", "started_at", "completed_at", "created_at", "updated_at",
        mode="after",
    )
    @classmethod
    def _as_utc(cls, value):
        return ensure_utc(value)

    @property
    def attempt(self) -> int:
        """1-based number of the attempt currently running (or next to run)"""
        return self.retry_count + 1

    @property
    def retries_exhausted(self) -> bool:
        return self.retry_count >= self.max_retries

    @property
    def is_terminal(self) -> bool:
        if self.status in TERMINAL_STATUSES:
            return True
        return self.status == JobStatus.failed.value and self.retries_exhausted
