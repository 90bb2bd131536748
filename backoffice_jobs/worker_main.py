"""
Worker Entry Point
This is the main entry point for the background job worker
Run with: python -m backoffice_jobs.worker_main
"""

import asyncio
import signal
import sys
from datetime import timedelta
from typing import Optional

from backoffice_jobs.core.config import Settings, get_settings
from backoffice_jobs.core.exceptions import DatabaseConnectionError, MigrationError
from backoffice_jobs.core.logger import critical, info, warning
from backoffice_jobs.core.setup_logger import worker_logger
from backoffice_jobs.db.database import create_database
from backoffice_jobs.db.migration_runner import MigrationRunner
from backoffice_jobs.repositories.audit_repository import AuditSink
from backoffice_jobs.repositories.health_repository import HealthRepository
from backoffice_jobs.repositories.job_repository import JobRepository
from backoffice_jobs.workers.backoff import RetryPolicy
from backoffice_jobs.workers.heartbeat import Heartbeat
from backoffice_jobs.workers.job_handlers import InventorySyncHandler, MenuSyncHandler, NotificationHandler
from backoffice_jobs.workers.registry import HandlerRegistry
from backoffice_jobs.workers.runner import JobRunner, default_worker_id


def build_registry() -> HandlerRegistry:
    """Registry with the handlers this worker ships"""
    registry = HandlerRegistry()
    registry.register_handler(MenuSyncHandler())
    registry.register_handler(InventorySyncHandler())
    registry.register_handler(NotificationHandler())
    return registry


def build_runner(db, registry: HandlerRegistry, settings: Settings) -> JobRunner:
    return JobRunner(
        JobRepository(db),
        AuditSink(db),
        registry,
        worker_id=settings.WORKER_ID or default_worker_id(),
        poll_interval=settings.WORKER_POLL_INTERVAL,
        batch_size=settings.WORKER_BATCH_SIZE,
        job_timeout=settings.JOB_TIMEOUT,
        job_timeouts=settings.JOB_TIMEOUTS,
        retry_policy=RetryPolicy(
            base=settings.RETRY_BACKOFF_BASE,
            unit=timedelta(seconds=settings.RETRY_BACKOFF_UNIT_SECONDS),
            max_delay=timedelta(seconds=settings.RETRY_MAX_DELAY_SECONDS),
        ),
        stale_after=settings.STALE_JOB_TIMEOUT,
    )


async def main(settings: Optional[Settings] = None) -> int:
    """
    Main function to start the worker

    Returns:
        Process exit code
    """
    settings = settings or get_settings()
    info(worker_logger, "Worker process starting...")

    db = create_database(settings)
    try:
        await db.connect()
    except DatabaseConnectionError as e:
        critical(worker_logger, "Worker failed to start: database unreachable", context={"error": e.message})
        return 1

    try:
        try:
            await MigrationRunner(db, settings.migrations_path).run()
        except MigrationError as e:
            critical(worker_logger, "Worker failed to start: migration failed", context={
                "migration": e.name,
                "error": e.message,
            })
            return 1

        registry = build_registry()
        runner = build_runner(db, registry, settings)
        heartbeat = Heartbeat(HealthRepository(db), interval=settings.HEARTBEAT_INTERVAL)

        stop_requested = asyncio.Event()
        loop = asyncio.get_running_loop()

        def request_stop(signal_name: str):
            warning(worker_logger, f"Received {signal_name} signal, initiating graceful shutdown...")
            stop_requested.set()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, request_stop, sig.name)
        info(worker_logger, "Signal handlers registered (SIGTERM, SIGINT)")

        await heartbeat.start()
        runner.start()
        info(worker_logger, "Worker is now polling for jobs", context={
            "worker_id": runner.worker_id,
            "job_types": registry.job_types(),
        })

        waiter = asyncio.create_task(stop_requested.wait())
        runner_task = asyncio.create_task(runner.wait())
        await asyncio.wait({waiter, runner_task}, return_when=asyncio.FIRST_COMPLETED)
        waiter.cancel()

        await runner.stop()
        await heartbeat.stop()
        outcome, = await asyncio.gather(runner_task, return_exceptions=True)
        if isinstance(outcome, Exception):
            return 1
    finally:
        await db.close()

    info(worker_logger, "Worker process terminated")
    return 0


def run():
    """Console script entry point"""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        info(worker_logger, "Worker stopped by user")


if __name__ == "__main__":
    """
    Entry point when running: python -m backoffice_jobs.worker_main
    """
    run()
