from backoffice_jobs.workers.backoff import RetryPolicy
from backoffice_jobs.workers.heartbeat import Heartbeat
from backoffice_jobs.workers.registry import HandlerRegistry
from backoffice_jobs.workers.runner import JobRunner

__all__ = [
    "RetryPolicy",
    "Heartbeat",
    "HandlerRegistry",
    "JobRunner",
]
