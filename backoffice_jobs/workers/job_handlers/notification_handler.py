"""
Notification sending job handler
"""
from typing import Any, Dict

from backoffice_jobs.constants.job_types import JobTypes
from backoffice_jobs.core.logger import debug, info
from backoffice_jobs.models.jobs_model import Job
from backoffice_jobs.workers.job_handlers.base_handler import BaseJobHandler


class NotificationHandler(BaseJobHandler):
    """Handler for outbound notification jobs"""

    @property
    def job_type(self) -> str:
        return JobTypes.send_notification.value

    async def execute(self, job: Job) -> Dict[str, Any]:
        """
        Process notification job

        Expected payload:
        {
            "type": "sms|email",
            "to": "recipient",
            "message": "body"
        }
        """
        debug(self.logger, "Notification handler started", context={"job_id": job.id})

        payload = job.payload if isinstance(job.payload, dict) else {}
        notification_type = payload.get("type", "unknown")

        # TODO: hand off to the SMS/email provider adapter once one is configured
        result = {
            "sent": True,
            "type": notification_type,
            "to": payload.get("to"),
        }

        info(self.logger, f"Sending notification: {notification_type}", context={
            "job_id": job.id,
            "tenant_id": job.tenant_id,
        })
        return result
