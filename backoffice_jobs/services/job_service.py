import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from backoffice_jobs.constants.audit_actions import AuditActions, JOB_ENTITY_TYPE, SYSTEM_ACTOR
from backoffice_jobs.constants.job_status import JobStatus
from backoffice_jobs.core.exceptions import InvalidJobStateError, JobNotFoundError
from backoffice_jobs.core.logger import info
from backoffice_jobs.core.setup_logger import api_logger
from backoffice_jobs.db.dialects import utcnow
from backoffice_jobs.models.jobs_model import Job
from backoffice_jobs.repositories.audit_repository import AuditSink
from backoffice_jobs.repositories.job_repository import JobRepository

DEFAULT_MAX_RETRIES = 3
DEFAULT_PRIORITY = 10


class JobService:
    """
    Producer-facing operations: enqueue, cancel, status, and the operator reads.

    Errors surface to the caller; an unreachable store makes enqueue fail loudly.
    """

    def __init__(self, repo: JobRepository, audit: Optional[AuditSink] = None, clock=utcnow):
        self.repo = repo
        self.audit = audit
        self.clock = clock

    async def enqueue(
            self,
            tenant_id: Optional[str],
            job_type: str,
            entity_type: Optional[str] = None,
            entity_id: Optional[str] = None,
            payload: Optional[Dict[str, Any]] = None,
            max_retries: int = DEFAULT_MAX_RETRIES,
            priority: int = DEFAULT_PRIORITY,
            scheduled_at: Optional[datetime] = None,
    ) -> str:
        """
        Insert a pending job.

        ``scheduled_at`` defaults to now and is also the first dispatch gate.

        Returns:
            The new job id
        """
        if not job_type:
            raise ValueError("job_type is required")
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")

        now = self.clock()
        job_id = str(uuid.uuid4())
        await self.repo.insert(
            job_id=job_id,
            tenant_id=tenant_id,
            job_type=job_type,
            entity_type=entity_type,
            entity_id=entity_id,
            payload=payload if payload is not None else {},
            max_retries=max_retries,
            priority=priority,
            scheduled_at=scheduled_at or now,
            now=now,
        )

        info(api_logger, "Job enqueued", context={
            "job_id": job_id,
            "job_type": job_type,
            "tenant_id": tenant_id,
            "priority": priority,
            "max_retries": max_retries,
        })
        return job_id

    async def cancel(self, job_id: str) -> Job:
        """
        Cancel a job that has not started yet.

        Raises:
            JobNotFoundError: unknown id
            InvalidJobStateError: the job is no longer pending
        """
        job = await self.repo.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)

        cancelled = await self.repo.cancel_pending(job_id, self.clock())
        if not cancelled:
            # re-read: a runner may have claimed it between the read and the update
            current = await self.repo.get(job_id)
            raise InvalidJobStateError(job_id, current.status if current else job.status, "cancel")

        if self.audit is not None:
            await self.audit.record(
                job.tenant_id, SYSTEM_ACTOR, AuditActions.job_cancelled, JOB_ENTITY_TYPE, job_id,
                {"type": job.job_type},
            )

        info(api_logger, "Job cancelled", context={"job_id": job_id, "job_type": job.job_type})
        return await self.repo.get(job_id)

    async def get_status(self, job_id: str) -> Job:
        job = await self.repo.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def list_jobs(self, status: Optional[str] = None, limit: int = 50, offset: int = 0) -> List[Job]:
        """
        List jobs with optional filtering.

        Newest first. Supports pagination.
        """
        if status is not None and status not in {s.value for s in JobStatus}:
            raise ValueError(f"Unknown job status: {status}")
        return await self.repo.list_by_status(status, limit=limit, offset=offset)

    async def get_stats(self) -> Dict[str, int]:
        counts = await self.repo.count_by_status()
        stats = {f"{status}_count": count for status, count in counts.items()}
        stats["failed_final_count"] = await self.repo.count_failed_final()
        return stats
