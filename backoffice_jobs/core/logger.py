import logging
import sys
import json
from datetime import datetime
from pathlib import Path
from logging.handlers import TimedRotatingFileHandler


class PlainLogFormatter(logging.Formatter):
    """Plain formatter for file output (no colors)"""

    def format_level(self, level_name):
        return level_name

    def format(self, record):
        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S')

        # [timestamp] LEVEL: message
        log_entry = f"[{timestamp}] {self.format_level(record.levelname)}: {record.getMessage()}"

        if record.exc_info:
            log_entry += f"\n{self.formatException(record.exc_info)}"

        if getattr(record, 'stack', None):
            log_entry += f"\nStack trace:\n{record.stack}"

        context = getattr(record, 'context', None)
        if context:
            try:
                context_str = json.dumps(context, indent=2, default=str)
                log_entry += f"\nContext: {context_str}"
            except (TypeError, ValueError):
                log_entry += f"\nContext: {context}"

        return log_entry


class ColoredLogFormatter(PlainLogFormatter):
    """Console formatter, same layout as the file one with a colored level"""

    COLORS = {
        'DEBUG': '\033[36m',  # Cyan
        'INFO': '\033[32m',  # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',  # Red
        'CRITICAL': '\033[35m',  # Purple
        'RESET': '\033[0m'  # Reset
    }

    def format_level(self, level_name):
        return f"{self.COLORS.get(level_name, '')}{level_name}{self.COLORS['RESET']}"


def setup_logging(
        log_level=logging.INFO,
        log_dir='logs',
        app_name='backoffice-jobs',
        backup_count=30
):
    """
    Configure a named logger with a console handler and a daily rotated file

    """
    logger_instance = logging.getLogger(app_name)
    logger_instance.setLevel(log_level)
    logger_instance.propagate = False

    # Prevent duplicate handlers if called multiple times
    if logger_instance.handlers:
        return logger_instance

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ColoredLogFormatter())
    logger_instance.addHandler(console_handler)

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    # app-name-YYYY-MM-DD.log
    today = datetime.now().strftime('%Y-%m-%d')
    log_file = log_path / f"{app_name}-{today}.log"

    file_handler = TimedRotatingFileHandler(
        filename=str(log_file),
        when='midnight',
        interval=1,
        backupCount=backup_count,
        encoding='utf-8'
    )

    # TimedRotatingFileHandler appends .YYYY-MM-DD; keep app-name-YYYY-MM-DD.log instead
    def namer(default_name):
        return default_name.replace(f"{app_name}-{today}.log.", f"{app_name}-")

    file_handler.namer = namer
    file_handler.setFormatter(PlainLogFormatter())
    logger_instance.addHandler(file_handler)

    return logger_instance


def log_with_context(logger, level, message, context=None, exc_info=None):
    """Log a message with additional context data"""
    extra = {'context': context} if context else {}
    logger.log(level, message, extra=extra, exc_info=exc_info)


def debug(logger, message, context=None):
    log_with_context(logger, logging.DEBUG, message, context)


def info(logger, message, context=None):
    log_with_context(logger, logging.INFO, message, context)


def warning(logger, message, context=None):
    log_with_context(logger, logging.WARNING, message, context)


def error(logger, message, context=None, exc_info=None):
    """Log error message with optional context and traceback"""
    log_with_context(logger, logging.ERROR, message, context, exc_info)


def critical(logger, message, context=None, exc_info=None):
    log_with_context(logger, logging.CRITICAL, message, context, exc_info)
