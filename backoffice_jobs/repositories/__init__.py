from backoffice_jobs.repositories.audit_repository import AuditRepository, AuditSink
from backoffice_jobs.repositories.health_repository import HealthRepository
from backoffice_jobs.repositories.job_repository import JobRepository

__all__ = [
    "AuditRepository",
    "AuditSink",
    "HealthRepository",
    "JobRepository",
]
