from .job_schemas import (
    JobCreate,
    JobResponse,
    JobListResponse,
    JobStats,
    SystemHealth,
)

__all__ = [
    "JobCreate",
    "JobResponse",
    "JobListResponse",
    "JobStats",
    "SystemHealth",
]
