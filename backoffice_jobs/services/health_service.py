from datetime import timedelta
from typing import Any, Dict

from backoffice_jobs.core.exceptions import DatabaseError
from backoffice_jobs.core.logger import warning
from backoffice_jobs.core.setup_logger import api_logger
from backoffice_jobs.db.database import Database
from backoffice_jobs.db.dialects import utcnow
from backoffice_jobs.repositories.audit_repository import AuditRepository
from backoffice_jobs.repositories.health_repository import HealthRepository
from backoffice_jobs.repositories.job_repository import JobRepository


class HealthService:
    """Summary of store connectivity, worker liveness and queue backlog"""

    def __init__(self, db: Database, stale_after: float = 90.0, clock=utcnow):
        self.db = db
        self.stale_after = timedelta(seconds=stale_after)
        self.clock = clock

    async def system_health(self) -> Dict[str, Any]:
        now = self.clock()
        db_connected = self.db.is_connected and await self.db.ping()

        summary = {
            "status": "down",
            "db_connected": db_connected,
            "worker_healthy": False,
            "worker_last_seen_at": None,
            "job_backlog": 0,
            "failed_jobs": 0,
            "error_rate_last_1h": 0.0,
        }
        if not db_connected:
            return summary

        try:
            last_seen = await HealthRepository(self.db).last_seen()
            counts = await JobRepository(self.db).count_by_status()
            error_rate = await AuditRepository(self.db).error_rate_since(now - timedelta(hours=1))
        except DatabaseError as e:
            warning(api_logger, "System health query failed", context={"error": e.message})
            summary["status"] = "degraded"
            return summary

        worker_healthy = last_seen is not None and now - last_seen <= self.stale_after
        summary.update({
            "status": "operational" if worker_healthy else "degraded",
            "worker_healthy": worker_healthy,
            "worker_last_seen_at": last_seen,
            "job_backlog": counts.get("pending", 0),
            "failed_jobs": counts.get("failed", 0),
            "error_rate_last_1h": round(error_rate, 4),
        })
        return summary
