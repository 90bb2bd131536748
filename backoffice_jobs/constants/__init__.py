from backoffice_jobs.constants.audit_actions import AuditActions, JOB_ENTITY_TYPE, SYSTEM_ACTOR
from backoffice_jobs.constants.job_status import JobStatus, DISPATCHABLE_STATUSES, TERMINAL_STATUSES
from backoffice_jobs.constants.job_types import JobTypes

__all__ = [
    "AuditActions",
    "JOB_ENTITY_TYPE",
    "SYSTEM_ACTOR",
    "JobStatus",
    "DISPATCHABLE_STATUSES",
    "TERMINAL_STATUSES",
    "JobTypes",
]
