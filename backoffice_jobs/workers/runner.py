"""
Job Runner
Polls the job store on a fixed interval and executes due jobs
"""
import asyncio
import inspect
import socket
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from backoffice_jobs.constants.audit_actions import AuditActions, JOB_ENTITY_TYPE, SYSTEM_ACTOR
from backoffice_jobs.constants.job_status import JobStatus
from backoffice_jobs.core.exceptions import HandlerNotRegisteredError, HandlerTimeoutError
from backoffice_jobs.core.logger import critical, debug, error, info, warning
from backoffice_jobs.core.setup_logger import worker_logger
from backoffice_jobs.db.dialects import utcnow
from backoffice_jobs.models.jobs_model import Job
from backoffice_jobs.repositories.audit_repository import AuditSink
from backoffice_jobs.repositories.job_repository import JobRepository
from backoffice_jobs.workers.backoff import RetryPolicy
from backoffice_jobs.workers.registry import Handler, HandlerRegistry


def default_worker_id() -> str:
    return f"{socket.gethostname()}-{uuid.uuid4().hex[:8]}"


def _is_async_callable(handler: Handler) -> bool:
    return inspect.iscoroutinefunction(handler) or inspect.iscoroutinefunction(getattr(handler, "__call__", None))


async def _invoke(handler: Handler, job: Job) -> Any:
    """Await async handlers; run plain callables in a worker thread so they cannot block the loop"""
    if _is_async_callable(handler):
        return await handler(job)
    outcome = await asyncio.to_thread(handler, job)
    if inspect.isawaitable(outcome):
        outcome = await outcome
    return outcome


class JobRunner:
    """
    Background job runner.

    One polling loop per instance. Each cycle reclaims stale attempts, selects
    up to ``batch_size`` due jobs (priority DESC, next_run_at ASC) and runs them
    one after another: claim, execute under a deadline, record the outcome.
    Several runner processes may share one store; the conditional claim makes
    sure each attempt is executed by one of them only.
    """

    def __init__(
            self,
            store: JobRepository,
            audit: AuditSink,
            registry: HandlerRegistry,
            *,
            worker_id: Optional[str] = None,
            poll_interval: float = 5.0,
            batch_size: int = 5,
            job_timeout: Optional[float] = 30.0,
            job_timeouts: Optional[Dict[str, float]] = None,
            retry_policy: Optional[RetryPolicy] = None,
            stale_after: float = 600.0,
            clock=utcnow,
    ):
        """
        Initialize the runner

        Args:
            store: Job repository bound to the database
            audit: Sink for lifecycle entries
            registry: Handlers by job type, filled before start()
            worker_id: Identity stamped on claimed jobs
            poll_interval: Seconds between polls
            batch_size: Max jobs selected per poll
            job_timeout: Default execution deadline in seconds (None disables it)
            job_timeouts: Per job type deadline overrides
            retry_policy: Backoff applied after a failed attempt
            stale_after: Seconds after which a processing attempt is reclaimed
            clock: Returns the current UTC time
        """
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")

        self.store = store
        self.audit = audit
        self.registry = registry
        self.worker_id = worker_id or default_worker_id()
        self.poll_interval = poll_interval
        self.batch_size = batch_size
        self.job_timeout = job_timeout
        self.job_timeouts = dict(job_timeouts or {})
        self.retry_policy = retry_policy or RetryPolicy()
        self.stale_after = timedelta(seconds=stale_after)
        self.clock = clock

        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

        # Statistics
        self.jobs_processed = 0
        self.jobs_succeeded = 0
        self.jobs_failed = 0
        self.jobs_reclaimed = 0

        longest = max([t for t in [job_timeout, *self.job_timeouts.values()] if t], default=0)
        if longest and stale_after <= longest:
            warning(worker_logger, "Stale threshold is not above the job timeout, running jobs may be reclaimed", context={
                "stale_after": stale_after,
                "longest_timeout": longest,
            })

        info(worker_logger, "Job runner initialized", context={
            "worker_id": self.worker_id,
            "poll_interval": self.poll_interval,
            "batch_size": self.batch_size,
            "job_timeout": self.job_timeout,
            "job_timeouts": self.job_timeouts,
            "backoff_base": self.retry_policy.base,
        })

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def timeout_for(self, job_type: str) -> Optional[float]:
        return self.job_timeouts.get(job_type, self.job_timeout)

    def start(self, poll_interval: Optional[float] = None) -> None:
        """
        Spawn the polling loop on the running event loop.
        Handlers must be registered before this is called.
        """
        if self.is_running:
            warning(worker_logger, "Job runner already running", context={"worker_id": self.worker_id})
            return

        if poll_interval is not None:
            self.poll_interval = poll_interval

        if len(self.registry) == 0:
            warning(worker_logger, "Job runner starting with no registered handlers")

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._processing_loop(), name=f"job-runner-{self.worker_id}")

        info(worker_logger, "Job runner starting...", context={
            "worker_id": self.worker_id,
            "poll_interval": self.poll_interval,
            "job_types": self.registry.job_types(),
        })

    async def stop(self) -> None:
        """
        Stop the runner gracefully.
        Returns once the in-flight batch has been recorded.
        """
        if self._task is None:
            return

        warning(worker_logger, "Stop requested", context={"worker_id": self.worker_id})
        self._stop_event.set()
        await self.wait()

    async def wait(self) -> None:
        """Block until the polling loop exits"""
        if self._task is None:
            return
        task = self._task
        try:
            await task
        finally:
            if self._task is task:
                self._task = None

    async def _processing_loop(self):
        """
        Main loop for processing jobs
        Polls, runs the batch, then sleeps for the poll interval
        """
        info(worker_logger, "Entering main processing loop...", context={"worker_id": self.worker_id})

        try:
            while not self._stop_event.is_set():
                try:
                    executed = await self.run_once()
                    if executed == 0:
                        debug(worker_logger, "No jobs available", context={"worker_id": self.worker_id})
                except Exception as e:
                    error(worker_logger, "Error in processing loop", context={
                        "error": str(e),
                        "error_type": type(e).__name__,
                        "worker_id": self.worker_id,
                    })

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self.poll_interval)
                except asyncio.TimeoutError:
                    pass
        except asyncio.CancelledError:
            warning(worker_logger, "Processing loop cancelled", context={"worker_id": self.worker_id})
            raise
        except Exception as e:
            critical(worker_logger, "Job runner crashed with unexpected error", context={
                "worker_id": self.worker_id,
                "error": str(e),
                "error_type": type(e).__name__,
            }, exc_info=True)
            raise
        finally:
            self._shutdown()

        info(worker_logger, "Exiting main processing loop")

    async def run_once(self) -> int:
        """
        One poll cycle.

        Returns:
            Number of attempts this runner claimed and executed
        """
        now = self.clock()
        try:
            await self.reclaim_stale(now)
        except Exception as e:
            # a failed sweep must not hold back due jobs
            error(worker_logger, "Stale job sweep failed", context={
                "error": str(e),
                "error_type": type(e).__name__,
                "worker_id": self.worker_id,
            })

        jobs = await self.store.find_due(now, self.batch_size)
        if jobs:
            debug(worker_logger, f"Selected {len(jobs)} due jobs", context={
                "job_ids": [job.id for job in jobs],
                "worker_id": self.worker_id,
            })

        executed = 0
        for job in jobs:
            try:
                if await self._process_job(job):
                    executed += 1
            except Exception as e:
                # persistence failure around one job; the rest of the batch still runs
                error(worker_logger, "Unexpected error while processing job", context={
                    "job_id": job.id,
                    "job_type": job.job_type,
                    "error": str(e),
                    "error_type": type(e).__name__,
                })
        return executed

    async def reclaim_stale(self, now: Optional[datetime] = None) -> int:
        """
        Record attempts stuck in ``processing`` past the stale threshold as failed,
        so they retry (or finish as failed) instead of staying stuck forever.
        """
        now = now or self.clock()
        stale_jobs = await self.store.find_stale(now - self.stale_after, limit=self.batch_size * 10)

        reclaimed = 0
        for job in stale_jobs:
            warning(worker_logger, "Reclaiming stale job", context={
                "job_id": job.id,
                "job_type": job.job_type,
                "locked_by": job.locked_by,
                "started_at": job.started_at,
            })
            message = (
                f"Attempt {job.attempt} did not finish within {self.stale_after.total_seconds():g}s "
                f"(claimed by {job.locked_by or 'unknown'})"
            )
            try:
                recorded = await self._record_failure(
                    job,
                    message,
                    started_at=job.started_at or now,
                    action=AuditActions.job_reclaimed,
                )
            except Exception as e:
                # the job stays in processing and is retried by the next sweep
                error(worker_logger, "Failed to reclaim stale job", context={
                    "job_id": job.id,
                    "job_type": job.job_type,
                    "error": str(e),
                    "error_type": type(e).__name__,
                })
                continue
            if recorded:
                reclaimed += 1
                self.jobs_reclaimed += 1
        return reclaimed

    async def _process_job(self, job: Job) -> bool:
        """
        Claim and run a single job

        Returns:
            False when another runner claimed it first (nothing was executed)
        """
        started_at = self.clock()
        if not await self.store.claim(job, started_at, self.worker_id):
            debug(worker_logger, "Job already claimed or no longer due, skipping", context={
                "job_id": job.id,
                "worker_id": self.worker_id,
            })
            return False

        job = job.model_copy(update={
            "status": JobStatus.processing.value,
            "started_at": started_at,
            "locked_by": self.worker_id,
        })

        info(worker_logger, "Job claimed", context={
            "job_id": job.id,
            "job_type": job.job_type,
            "attempt": job.attempt,
            "max_retries": job.max_retries,
            "worker_id": self.worker_id,
        })
        await self.audit.record(
            job.tenant_id, SYSTEM_ACTOR, AuditActions.job_started, JOB_ENTITY_TYPE, job.id,
            {"type": job.job_type, "attempt": job.attempt},
        )

        self.jobs_processed += 1
        handler = self.registry.get(job.job_type)

        try:
            if handler is None:
                raise HandlerNotRegisteredError(job.job_type)
            result = await self._execute(handler, job)
        except HandlerNotRegisteredError as e:
            # retrying cannot make a handler appear
            error(worker_logger, "Invalid job type or handler not found", context={
                "job_id": job.id,
                "job_type": job.job_type,
                "registered": self.registry.job_types(),
            })
            await self._record_failure(job, str(e), started_at=started_at, permanent=True)
        except Exception as e:
            duration = (self.clock() - started_at).total_seconds()
            error(worker_logger, "Job processing failed", context={
                "job_id": job.id,
                "job_type": job.job_type,
                "error": str(e),
                "error_type": type(e).__name__,
                "duration_seconds": round(duration, 2),
                "attempt": job.attempt,
            })
            await self._record_failure(job, str(e) or type(e).__name__, started_at=started_at)
        else:
            await self._record_success(job, result, started_at)

        return True

    async def _execute(self, handler: Handler, job: Job) -> Any:
        timeout = self.timeout_for(job.job_type)
        try:
            return await asyncio.wait_for(_invoke(handler, job), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise HandlerTimeoutError(job.job_type, timeout) from e

    async def _record_success(self, job: Job, result: Any, started_at: datetime) -> None:
        completed_at = self.clock()
        if not await self.store.mark_completed(job, result, completed_at):
            warning(worker_logger, "Job left processing before completion was recorded, result dropped", context={
                "job_id": job.id,
                "job_type": job.job_type,
            })
            return

        self.jobs_succeeded += 1
        await self.audit.record(
            job.tenant_id, SYSTEM_ACTOR, AuditActions.job_completed, JOB_ENTITY_TYPE, job.id,
            {"type": job.job_type, "result": result},
        )

        info(worker_logger, "Job completed successfully", context={
            "job_id": job.id,
            "job_type": job.job_type,
            "duration_seconds": round((completed_at - started_at).total_seconds(), 2),
            "attempt": job.attempt,
        })

    async def _record_failure(
            self,
            job: Job,
            message: str,
            *,
            started_at: datetime,
            permanent: bool = False,
            action: AuditActions = AuditActions.job_failed,
    ) -> bool:
        """Write the failed attempt and its backoff. False if the attempt was already settled elsewhere."""
        if permanent:
            retry_count = job.max_retries
        else:
            retry_count = min(job.retry_count + 1, job.max_retries)
        is_final = retry_count >= job.max_retries
        next_run_at = self.retry_policy.next_run_at(started_at, retry_count)

        written = await self.store.mark_failed(
            job,
            retry_count=retry_count,
            error_message=message,
            next_run_at=next_run_at,
            now=self.clock(),
        )
        if not written:
            warning(worker_logger, "Job left processing before failure was recorded", context={
                "job_id": job.id,
                "job_type": job.job_type,
            })
            return False

        self.jobs_failed += 1
        await self.audit.record(
            job.tenant_id, SYSTEM_ACTOR, action, JOB_ENTITY_TYPE, job.id,
            {
                "type": job.job_type,
                "error": message,
                "attempt": job.attempt,
                "next_run_at": next_run_at.isoformat(),
                "is_final": is_final,
            },
        )

        if is_final:
            warning(worker_logger, "Job failed permanently", context={
                "job_id": job.id,
                "job_type": job.job_type,
                "retry_count": retry_count,
            })
        else:
            info(worker_logger, "Job scheduled for retry", context={
                "job_id": job.id,
                "job_type": job.job_type,
                "retry_count": retry_count,
                "next_run_at": next_run_at.isoformat(),
            })
        return True

    def _shutdown(self):
        """
        Log final statistics
        """
        info(worker_logger, "Job runner statistics", context={
            "worker_id": self.worker_id,
            "jobs_processed": self.jobs_processed,
            "jobs_succeeded": self.jobs_succeeded,
            "jobs_failed": self.jobs_failed,
            "jobs_reclaimed": self.jobs_reclaimed,
            "success_rate": f"{(self.jobs_succeeded / self.jobs_processed * 100) if self.jobs_processed > 0 else 0:.2f}%"
        })

        info(worker_logger, "Job runner stopped gracefully", context={
            "worker_id": self.worker_id
        })
