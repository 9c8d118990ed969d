"""
Centralized logging setup for peerdraw.
"""
import logging
import datetime
import json
import os
import sys
import tempfile
from typing import Any, Optional

LOGGER_NAME = "peerdraw"


def _resolve_log_dir(preferred: Optional[str] = None) -> Optional[str]:
    """Pick a writable log directory, or None when nothing is writable."""
    candidates = [
        preferred,
        os.environ.get("PEERDRAW_LOG_DIR"),
        os.path.join(tempfile.gettempdir(), "peerdraw-logs"),
    ]

    for directory in candidates:
        if not directory:
            continue
        try:
            os.makedirs(directory, exist_ok=True)
            if os.access(directory, os.W_OK):
                return directory
        except OSError:
            continue

    return None


def setup_logging(level: str = "INFO", log_file: str = "peerdraw.log",
                  log_dir: Optional[str] = None) -> logging.Logger:
    """Setup logging with console output and a best-effort log file."""
    handlers = [logging.StreamHandler()]

    directory = _resolve_log_dir(log_dir)
    log_path = os.path.join(directory, log_file) if directory else None
    if log_path:
        try:
            handlers.append(logging.FileHandler(log_path, mode='a', encoding='utf-8'))
        except OSError as e:
            print(f"WARNING: Cannot write to log file {log_path}: {e}", file=sys.stderr)
            log_path = None

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%H:%M:%S',
        handlers=handlers
    )

    logger = logging.getLogger(LOGGER_NAME)
    logger.info(f"Logging initialized - output will be written to: {log_path or 'console only'}")

    return logger


def debug_log(message: str, data: Optional[Any] = None, level: str = "INFO") -> None:
    """
    Log a message with optional structured data.

    Args:
        message: The log message
        data: Optional data to log; dicts are pretty-printed as JSON
        level: Log level (DEBUG, INFO, WARNING, ERROR)
    """
    logger = logging.getLogger(LOGGER_NAME)
    log_level = getattr(logging, level.upper(), logging.INFO)
    if not logger.isEnabledFor(log_level):
        return

    timestamp = datetime.datetime.now().strftime("%H:%M:%S.%f")[:-3]

    if data:
        if isinstance(data, dict):
            data_str = json.dumps(data, indent=2, default=str)
            logger.log(log_level, f"[{timestamp}] {message}\nData: {data_str}")
        else:
            logger.log(log_level, f"[{timestamp}] {message} - {data}")
    else:
        logger.log(log_level, f"[{timestamp}] {message}")


class LoggerMixin:
    """Mixin class to add logging capabilities to other classes."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.logger = logging.getLogger(f"{LOGGER_NAME}.{self.__class__.__name__}")

    def log_debug(self, message: str, data: Optional[Any] = None):
        """Log debug message."""
        debug_log(message, data, "DEBUG")

    def log_info(self, message: str, data: Optional[Any] = None):
        """Log info message."""
        debug_log(message, data, "INFO")

    def log_warning(self, message: str, data: Optional[Any] = None):
        """Log warning message."""
        debug_log(message, data, "WARNING")

    def log_error(self, message: str, data: Optional[Any] = None):
        """Log error message."""
        debug_log(message, data, "ERROR")
