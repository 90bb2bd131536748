from backoffice_jobs.services.health_service import HealthService
from backoffice_jobs.services.job_service import JobService

__all__ = [
    "HealthService",
    "JobService",
]
