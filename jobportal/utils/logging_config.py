"""Logging configuration for the application."""

import logging
import logging.handlers
import os
import sys
from contextvars import ContextVar
from pathlib import Path

from jobportal.config import LOGS_DIR, settings

# Initialize logger
logger = logging.getLogger(__name__)

# Set per request by the request logging middleware
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")


class RequestContextFilter(logging.Filter):
    """Stamp records with the id of the request being served."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get()
        return True


def _cleanup_old_logs(log_dir: Path, base_name: str, max_files: int, logger: logging.Logger):
    """Clean up old log files when max number is reached.

    Args:
        log_dir: Directory containing log files
        base_name: Base name of the log file (e.g., 'app.log')
        max_files: Maximum number of log files to keep (including base file)
        logger: Logger instance for logging cleanup operations
    """
    try:
        log_files = sorted(
            [f for f in log_dir.glob(f"{base_name}.*") if f.is_file()],
            key=lambda x: x.stat().st_mtime,
            reverse=True,
        )

        if len(log_files) > max_files:
            files_to_delete = log_files[max_files:]
            for old_file in files_to_delete:
                try:
                    old_file.unlink()
                except OSError as e:
                    logger.error(f"Failed to delete old log file {old_file}: {e}")
            logger.info(f"Deleted {len(files_to_delete)} old log files")
    except OSError as e:
        logger.error(f"Error during log cleanup: {e}")


def setup_logging(log_dir: Path = LOGS_DIR):
    """Set up logging configuration."""
    os.makedirs(log_dir, exist_ok=True)

    # Handlers filter, the root logger captures everything
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    formatter = logging.Formatter(settings.logging.format)
    file_formatter = logging.Formatter(settings.logging.file_format)
    context_filter = RequestContextFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(settings.logging.log_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(context_filter)
    root_logger.addHandler(console_handler)

    log_file = log_dir / "app.log"
    file_handler = logging.handlers.TimedRotatingFileHandler(
        log_file,
        when="midnight",
        interval=1,
        backupCount=settings.logging.backup_count,
        encoding="utf-8",
        delay=True,
    )
    file_handler.suffix = "%Y-%m-%d"
    file_handler.setLevel(settings.logging.file_log_level)
    file_handler.setFormatter(file_formatter)
    file_handler.addFilter(context_filter)
    root_logger.addHandler(file_handler)

    _cleanup_old_logs(
        log_dir,
        "app.log",
        settings.logging.backup_count + 1,  # +1 for the live file
        root_logger,
    )

    for logger_name, level in settings.logging.noisy_loggers.items():
        logging.getLogger(logger_name).setLevel(level)
