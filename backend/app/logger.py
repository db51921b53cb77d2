"""Application logging with rotation and archiving"""
import logging
from logging.handlers import RotatingFileHandler
from datetime import datetime
from pathlib import Path
from typing import Optional
import shutil

from app.config import settings

LOGGER_NAME = "ipam-panel"
OPERATIONS_LOGGER_NAME = f"{LOGGER_NAME}.operations"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def archive_log(log_file: Path) -> Optional[Path]:
    """Copy the current log aside with a timestamp and truncate it.

    Args:
        log_file: Path to the log file to archive

    Returns:
        Path to archived file if archiving was done, None otherwise
    """
    if not log_file.exists() or log_file.stat().st_size == 0:
        return None

    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    archive_path = log_file.parent / f"{log_file.stem}.{timestamp}{log_file.suffix}"

    shutil.copy2(str(log_file), str(archive_path))
    with open(log_file, "w", encoding="utf-8") as f:
        f.write("")

    return archive_path


def cleanup_old_logs(logs_dir: Path, max_age_days: int = 30) -> int:
    """Remove archived log files older than max_age_days.

    Args:
        logs_dir: Directory containing log files
        max_age_days: Maximum age in days

    Returns:
        Number of removed files
    """
    if not logs_dir.exists():
        return 0

    now = datetime.now()
    removed = 0

    for log_file in logs_dir.glob("*.log*"):
        # Skip current log files
        if log_file.name in ["backend.log", "uvicorn.log"]:
            continue

        file_time = datetime.fromtimestamp(log_file.stat().st_mtime)
        if (now - file_time).days > max_age_days:
            log_file.unlink()
            removed += 1

    return removed


class OperationLogger:
    """Logger for IPAM operations (subnet, VLAN and address changes)."""

    def __init__(self, log_file: Optional[Path] = None, console_output: bool = False):
        self.log_file = log_file or settings.log_file
        self.console_output = console_output
        self._setup_logger()

    def _setup_logger(self):
        """Setup the logger with rotation."""
        self.logger = logging.getLogger(OPERATIONS_LOGGER_NAME)
        self.logger.setLevel(logging.DEBUG)
        for handler in list(self.logger.handlers):
            handler.close()
            self.logger.removeHandler(handler)
        self.logger.propagate = False

        self.log_file.parent.mkdir(parents=True, exist_ok=True)

        try:
            archive_log(self.log_file)
        except OSError:
            # If archiving fails, just continue with existing file
            pass

        # Rotating file handler (100 MB max)
        file_handler = RotatingFileHandler(
            self.log_file,
            maxBytes=100 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8"
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        self.logger.addHandler(file_handler)

        console_handler = None
        if self.console_output:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.INFO)
            console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
            self.logger.addHandler(console_handler)

        # Module loggers (ipam-panel.services.*, ipam-panel.api.*) share the file
        app_logger = logging.getLogger(LOGGER_NAME)
        app_logger.setLevel(logging.DEBUG if settings.debug else logging.INFO)
        app_logger.handlers.clear()
        app_logger.addHandler(file_handler)
        if console_handler:
            app_logger.addHandler(console_handler)

        for logger_name in ["uvicorn", "uvicorn.access", "uvicorn.error"]:
            logger_obj = logging.getLogger(logger_name)
            logger_obj.handlers.clear()
            logger_obj.addHandler(file_handler)
            logger_obj.propagate = False

    def log_operation(
        self,
        operator: str,
        action: str,
        obj: str,
        details: Optional[str] = None,
        level: str = "INFO",
    ):
        """Log an operation.

        Args:
            operator: Who performed the operation
            action: Action type (CREATE, UPDATE, DELETE, GENERATE, CLAIM, RELEASE)
            obj: Object being operated on (e.g. "subnet:10.0.0.0/24")
            details: Additional details
            level: Log level (INFO, WARNING, ERROR)
        """
        message = f"{operator} | {action} | {obj}"
        if details:
            message += f" | {details}"

        if level == "ERROR":
            self.logger.error(message)
        elif level == "WARNING":
            self.logger.warning(message)
        else:
            self.logger.info(message)

    def get_logs(self, limit: int = 100, filter_operator: Optional[str] = None) -> list:
        """Get recent operation entries, newest first.

        Args:
            limit: Maximum number of entries to return
            filter_operator: Optional operator filter

        Returns:
            List of log entries
        """
        entries = []

        if not self.log_file.exists():
            return entries

        with open(self.log_file, "r", encoding="utf-8") as f:
            lines = f.readlines()

        for line in reversed(lines):
            parts = line.strip().split(" | ")
            if len(parts) < 6 or parts[2] != OPERATIONS_LOGGER_NAME:
                continue

            entry = {
                "timestamp": parts[0],
                "level": parts[1].strip(),
                "operator": parts[3],
                "action": parts[4],
                "object": parts[5],
                "details": " | ".join(parts[6:]) or None,
            }

            if filter_operator and entry["operator"] != filter_operator:
                continue

            entries.append(entry)
            if len(entries) >= limit:
                break

        return entries


# Global logger instance
operation_logger = OperationLogger(console_output=settings.debug)


def log_operation(operator: str, action: str, obj: str, details: Optional[str] = None):
    """Convenience function to log an operation."""
    operation_logger.log_operation(operator, action, obj, details)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a specific module.

    Args:
        name: Module name (e.g., 'services.provisioning')

    Returns:
        Logger instance
    """
    return logging.getLogger(f"{LOGGER_NAME}.{name}")
