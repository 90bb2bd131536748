import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from backoffice_jobs.constants.job_status import DISPATCHABLE_STATUSES, JobStatus
from backoffice_jobs.db.dialects import as_number
from backoffice_jobs.models.jobs_model import Job
from backoffice_jobs.repositories.base_repository import BaseRepository


class JobRepository(BaseRepository[Job]):
    """
    All SQL touching ``sync_jobs``.

    Runner-side writes are conditional updates: a claim only succeeds when the
    row is still in the state the runner selected, and a terminal write only
    lands on the attempt that was claimed. Callers check the returned row
    count instead of trusting a previous read.
    """

    table = "sync_jobs"
    model = Job

    async def insert(
            self,
            *,
            job_id: str,
            tenant_id: Optional[str],
            job_type: str,
            entity_type: Optional[str],
            entity_id: Optional[str],
            payload: Any,
            max_retries: int,
            priority: int,
            scheduled_at: datetime,
            now: datetime,
    ) -> Job:
        await self.db.run(
            """
            INSERT INTO sync_jobs (
                id, tenant_id, job_type, entity_type, entity_id, status, payload,
                retry_count, max_retries, priority, scheduled_at, next_run_at,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, 0, ?, ?, ?, ?, ?, ?)
            """,
            [
                job_id, tenant_id, job_type, entity_type, entity_id,
                JobStatus.pending.value, _encode_json(payload if payload is not None else {}),
                max_retries, priority, scheduled_at, scheduled_at, now, now,
            ],
        )
        return await self.get(job_id)

    async def find_due(self, now: datetime, limit: int) -> List[Job]:
        """Jobs eligible for an attempt, highest priority first then earliest due"""
        return await self.fetch_all(
            """
            SELECT * FROM sync_jobs
            WHERE status IN (?, ?)
              AND next_run_at <= ?
              AND retry_count < max_retries
            ORDER BY priority DESC, next_run_at ASC, created_at ASC
            LIMIT ?
            """,
            [*DISPATCHABLE_STATUSES, now, limit],
        )

    async def claim(self, job: Job, now: datetime, worker_id: str) -> bool:
        """
        Flip a selected job to ``processing`` for one attempt.

        Returns:
            True if this caller owns the attempt, False if another runner got
            there first or the job left the dispatchable state (e.g. cancelled)
        """
        count = await self.db.run(
            """
            UPDATE sync_jobs
            SET status = ?, started_at = ?, completed_at = NULL, locked_by = ?, updated_at = ?
            WHERE id = ?
              AND status IN (?, ?)
              AND retry_count = ?
              AND retry_count < max_retries
              AND next_run_at <= ?
            """,
            [
                JobStatus.processing.value, now, worker_id, now,
                job.id,
                *DISPATCHABLE_STATUSES,
                job.retry_count,
                now,
            ],
        )
        return count == 1

    async def mark_completed(self, job: Job, result: Any, now: datetime) -> bool:
        count = await self.db.run(
            """
            UPDATE sync_jobs
            SET status = ?, result = ?, error_message = NULL, completed_at = ?,
                locked_by = NULL, updated_at = ?
            WHERE id = ? AND status = ? AND retry_count = ?
            """,
            [
                JobStatus.completed.value, _encode_json(result), now, now,
                job.id, JobStatus.processing.value, job.retry_count,
            ],
        )
        return count == 1

    async def mark_failed(
            self,
            job: Job,
            *,
            retry_count: int,
            error_message: str,
            next_run_at: datetime,
            now: datetime,
    ) -> bool:
        """Record a failed attempt. ``retry_count`` is the new value, capped by the caller."""
        count = await self.db.run(
            """
            UPDATE sync_jobs
            SET status = ?, retry_count = ?, error_message = ?, next_run_at = ?,
                locked_by = NULL, updated_at = ?
            WHERE id = ? AND status = ? AND retry_count = ?
            """,
            [
                JobStatus.failed.value, retry_count, error_message, next_run_at, now,
                job.id, JobStatus.processing.value, job.retry_count,
            ],
        )
        return count == 1

    async def cancel_pending(self, job_id: str, now: datetime) -> bool:
        count = await self.db.run(
            "UPDATE sync_jobs SET status = ?, updated_at = ? WHERE id = ? AND status = ?",
            [JobStatus.cancelled.value, now, job_id, JobStatus.pending.value],
        )
        return count == 1

    async def find_stale(self, cutoff: datetime, limit: int = 100) -> List[Job]:
        """``processing`` jobs whose attempt started before ``cutoff``"""
        return await self.fetch_all(
            """
            SELECT * FROM sync_jobs
            WHERE status = ? AND started_at < ?
            ORDER BY started_at ASC
            LIMIT ?
            """,
            [JobStatus.processing.value, cutoff, limit],
        )

    async def list_by_status(self, status: Optional[str] = None, limit: int = 50, offset: int = 0) -> List[Job]:
        if status:
            return await self.fetch_all(
                "SELECT * FROM sync_jobs WHERE status = ? ORDER BY created_at DESC, id ASC LIMIT ? OFFSET ?",
                [status, limit, offset],
            )
        return await self.fetch_all(
            "SELECT * FROM sync_jobs ORDER BY created_at DESC, id ASC LIMIT ? OFFSET ?",
            [limit, offset],
        )

    async def count_by_status(self) -> Dict[str, int]:
        """Counts for every status, zero included"""
        rows = await self.db.all("SELECT status, COUNT(*) AS count FROM sync_jobs GROUP BY status")
        counts = {status.value: 0 for status in JobStatus}
        for row in rows:
            counts[row["status"]] = int(as_number(row["count"]))
        return counts

    async def count_failed_final(self) -> int:
        """Failed jobs that will never be dispatched again"""
        return await self.db.count(
            "SELECT COUNT(*) AS count FROM sync_jobs WHERE status = ? AND retry_count >= max_retries",
            [JobStatus.failed.value],
        )


def _encode_json(value: Any) -> Any:
    # Any JSON value is stored as text, including bare strings and numbers
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return value
    return json.dumps(value, default=str)
