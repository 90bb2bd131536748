from enum import Enum


SYSTEM_ACTOR = "system"

JOB_ENTITY_TYPE = "sync_job"


class AuditActions(Enum):
    job_started = "job_started"
    job_completed = "job_completed"
    job_failed = "job_failed"
    job_reclaimed = "job_reclaimed"
    job_cancelled = "job_cancelled"
