from fastapi import Depends, Request

from backoffice_jobs.core import settings
from backoffice_jobs.db.database import Database
from backoffice_jobs.repositories.audit_repository import AuditSink
from backoffice_jobs.repositories.job_repository import JobRepository
from backoffice_jobs.services.health_service import HealthService
from backoffice_jobs.services.job_service import JobService


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_job_service(db: Database = Depends(get_database)) -> JobService:
    return JobService(JobRepository(db), AuditSink(db))


def get_health_service(db: Database = Depends(get_database)) -> HealthService:
    return HealthService(db, stale_after=settings.HEARTBEAT_STALE_AFTER)
