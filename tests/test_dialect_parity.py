# tests/test_dialect_parity.py
"""
Same operations, same observable results on both backends.

The postgres leg runs only when TEST_POSTGRES_URL points at a scratch database;
its tables are dropped before the run.
"""
from __future__ import annotations

import os
from datetime import timedelta

import pytest
import pytest_asyncio

from backoffice_jobs.core.config import DEFAULT_MIGRATIONS_DIR, Settings
from backoffice_jobs.db.database import Database
from backoffice_jobs.db.migration_runner import MigrationRunner
from backoffice_jobs.repositories.audit_repository import AuditRepository, AuditSink
from backoffice_jobs.repositories.health_repository import HealthRepository
from backoffice_jobs.repositories.job_repository import JobRepository
from backoffice_jobs.services.job_service import JobService

POSTGRES_URL = os.environ.get("TEST_POSTGRES_URL")


@pytest_asyncio.fixture(params=["sqlite", "postgres"])
async def backend(request, tmp_path):
    if request.param == "sqlite":
        database = Database(f"sqlite+aiosqlite:///{tmp_path / 'parity.db'}", connect_retries=1, retry_delay=0)
    else:
        if not POSTGRES_URL:
            pytest.skip("TEST_POSTGRES_URL not set")
        database = Database(Settings(DATABASE_URL=POSTGRES_URL).async_database_url, connect_retries=1, retry_delay=0)

    await database.connect()
    if request.param == "postgres":
        await database.exec(
            "DROP TABLE IF EXISTS sync_jobs, audit_logs, system_health, _migrations"
        )
    await MigrationRunner(database, DEFAULT_MIGRATIONS_DIR).run()
    yield database
    await database.close()


@pytest.mark.asyncio
async def test_lifecycle(backend, clock):
    store = JobRepository(backend)
    sink = AuditSink(backend, clock=clock.ticker())
    service = JobService(store, sink, clock=clock)

    job_id = await service.enqueue("tenant-1", "menu_sync", payload={"channels": ["a", "b"]}, max_retries=2)
    job = await service.get_status(job_id)
    assert job.payload == {"channels": ["a", "b"]}
    assert job.created_at == clock()

    due = await store.find_due(clock(), 5)
    assert [j.id for j in due] == [job_id]
    assert await store.claim(due[0], clock(), "w1") is True
    assert await store.claim(due[0], clock(), "w2") is False

    retry_at = clock() + timedelta(minutes=4)
    assert await store.mark_failed(due[0], retry_count=1, error_message="boom", next_run_at=retry_at, now=clock())
    failed = await service.get_status(job_id)
    assert failed.status == "failed"
    assert failed.retry_count == 1
    assert failed.next_run_at == retry_at
    assert await store.find_due(clock(), 5) == []

    clock.advance(minutes=4)
    (again,) = await store.find_due(clock(), 5)
    assert await store.claim(again, clock(), "w1")
    assert await store.mark_completed(again, {"ok": True}, clock())

    done = await service.get_status(job_id)
    assert done.status == "completed"
    assert done.result == {"ok": True}
    assert done.retry_count == 1


@pytest.mark.asyncio
async def test_reads_return_plain_python_types(backend, clock):
    service = JobService(JobRepository(backend), AuditSink(backend, clock=clock.ticker()), clock=clock)
    await service.enqueue("tenant-1", "menu_sync")
    cancelled = await service.enqueue("tenant-1", "menu_sync")
    await service.cancel(cancelled)

    stats = await service.get_stats()
    assert stats["pending_count"] == 1
    assert stats["cancelled_count"] == 1
    assert all(type(value) is int for value in stats.values())

    rate = await AuditRepository(backend).error_rate_since(clock() - timedelta(hours=1))
    assert rate == 0.0

    health = HealthRepository(backend)
    await health.touch(clock())
    await health.touch(clock() + timedelta(seconds=5))
    assert await health.last_seen() == clock() + timedelta(seconds=5)
