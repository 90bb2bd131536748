# tests/conftest.py
from __future__ import annotations

import os
import tempfile

# loggers are configured at import time from settings
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "backoffice-jobs-test-logs"))

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from backoffice_jobs.core.config import DEFAULT_MIGRATIONS_DIR
from backoffice_jobs.db.database import Database
from backoffice_jobs.db.migration_runner import MigrationRunner
from backoffice_jobs.repositories.audit_repository import AuditRepository, AuditSink
from backoffice_jobs.repositories.job_repository import JobRepository
from backoffice_jobs.services.job_service import JobService
from backoffice_jobs.workers.registry import HandlerRegistry
from backoffice_jobs.workers.runner import JobRunner


class FakeClock:
    """Settable UTC clock shared by the service, the runner and the audit sink"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now

    def ticker(self):
        """Same clock, but every reading is a microsecond later than the previous one"""
        ticks = {"n": 0}

        def read() -> datetime:
            ticks["n"] += 1
            return self.now + timedelta(microseconds=ticks["n"])

        return read


def sqlite_url(path) -> str:
    return f"sqlite+aiosqlite:///{path}"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc))


@pytest_asyncio.fixture
async def bare_db(tmp_path):
    """Connected, no schema"""
    database = Database(sqlite_url(tmp_path / "bare.db"), connect_retries=1, retry_delay=0)
    await database.connect()
    yield database
    await database.close()


@pytest_asyncio.fixture
async def db(tmp_path):
    """Connected and migrated"""
    database = Database(sqlite_url(tmp_path / "jobs.db"), connect_retries=1, retry_delay=0)
    await database.connect()
    await MigrationRunner(database, DEFAULT_MIGRATIONS_DIR).run()
    yield database
    await database.close()


@pytest.fixture
def store(db) -> JobRepository:
    return JobRepository(db)


@pytest.fixture
def audit(db, clock) -> AuditSink:
    return AuditSink(db, clock=clock.ticker())


@pytest.fixture
def audit_log(db) -> AuditRepository:
    return AuditRepository(db)


@pytest.fixture
def service(store, audit, clock) -> JobService:
    return JobService(store, audit, clock=clock)


@pytest.fixture
def registry() -> HandlerRegistry:
    return HandlerRegistry()


@pytest.fixture
def make_runner(store, audit, registry, clock):
    def _make(**kwargs) -> JobRunner:
        options = dict(
            worker_id="test-worker",
            poll_interval=0.01,
            batch_size=5,
            clock=clock,
        )
        options.update(kwargs)
        return JobRunner(store, audit, registry, **options)

    return _make
