from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from backoffice_jobs.constants.job_status import JobStatus


class JobCreate(BaseModel):
    """Schema for Job Creation"""

    tenant_id: Optional[str] = None
    job_type: str = Field(..., min_length=1, max_length=100)
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    max_retries: int = Field(default=3, ge=1, le=10)
    priority: int = 10
    scheduled_at: Optional[datetime] = None


class JobResponse(BaseModel):
    """Schema for job response."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: Optional[str] = None
    job_type: str
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    status: JobStatus
    payload: Any = None
    result: Any = None
    error_message: Optional[str] = None
    retry_count: int
    max_retries: int
    priority: int
    scheduled_at: Optional[datetime] = None
    next_run_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class JobListResponse(BaseModel):
    jobs: List[JobResponse]
    limit: int
    offset: int


class JobStats(BaseModel):
    """Schema for job queue statistics."""
    pending_count: int
    processing_count: int
    completed_count: int
    failed_count: int
    cancelled_count: int
    # failed jobs with retries exhausted; they are never dispatched again
    failed_final_count: int


class SystemHealth(BaseModel):
    status: str
    db_connected: bool
    worker_healthy: bool
    worker_last_seen_at: Optional[datetime] = None
    job_backlog: int
    failed_jobs: int
    error_rate_last_1h: float
