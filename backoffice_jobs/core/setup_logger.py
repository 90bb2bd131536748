"""
Centralized logger factory for the application
Provides separate loggers for the API, the worker and the database layer
"""
import logging

from backoffice_jobs.core.config import settings
from backoffice_jobs.core.logger import setup_logging

_level = logging.getLevelName(settings.LOG_LEVEL.upper())
if not isinstance(_level, int):
    _level = logging.INFO

# API Logger - for the FastAPI application
api_logger = setup_logging(
    log_level=_level,
    log_dir=settings.LOG_DIR,
    app_name='api',
    backup_count=30
)

# Worker Logger - runner, registry, heartbeat and handlers
worker_logger = setup_logging(
    log_level=_level,
    log_dir=settings.LOG_DIR,
    app_name='worker',
    backup_count=30
)

# Database Logger - persistence adapter, migrations, audit sink
db_logger = setup_logging(
    log_level=max(_level, logging.WARNING) if not settings.DEBUG else _level,
    log_dir=settings.LOG_DIR,
    app_name='db',
    backup_count=30
)
