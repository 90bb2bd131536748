from backoffice_jobs.workers.job_handlers.base_handler import BaseJobHandler
from backoffice_jobs.workers.job_handlers.inventory_sync_handler import InventorySyncHandler
from backoffice_jobs.workers.job_handlers.menu_sync_handler import MenuSyncHandler
from backoffice_jobs.workers.job_handlers.notification_handler import NotificationHandler


__all__ = [
   'BaseJobHandler',
   'InventorySyncHandler',
   'MenuSyncHandler',
   'NotificationHandler',
]
