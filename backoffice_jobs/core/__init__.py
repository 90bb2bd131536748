from backoffice_jobs.core import config
from backoffice_jobs.core.config import settings, get_settings, Settings
from backoffice_jobs.core.setup_logger import api_logger, worker_logger, db_logger

__all__ = [
    'config',
    'settings',
    'get_settings',
    'Settings',
    'worker_logger',
    'db_logger',
    'api_logger',
]
