from backoffice_jobs.models.audit_model import AuditEntry
from backoffice_jobs.models.jobs_model import Job

__all__ = [
    "AuditEntry",
    "Job",
]
