"""
Logging configuration for the mesh volume service.

All loggers live under the ``mesh_volume`` namespace. Handlers are attached
once to the package logger; module loggers obtained via :func:`get_logger`
propagate to it. Messages carry structured ``key=value`` context.
"""

import logging
import sys
import time
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, TextIO

ROOT_LOGGER_NAME = "mesh_volume"

_CONSOLE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
_FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def _setup_root_logger(level: int = logging.INFO, log_dir: Optional[str] = None,
                       stream: Optional[TextIO] = None) -> logging.Logger:
    """Attach console (and optionally file) handlers to the package logger."""
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(logging.DEBUG if log_dir is not None else level)

    # Remove existing handlers to avoid duplicates
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT))
    root.addHandler(console_handler)

    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        log_file = log_path / f"mesh_volume_{timestamp}.log"

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT))
        root.addHandler(file_handler)

        root.info(f"Logging initialized. Log file: {log_file}")

    return root


class MeshVolumeLogger:
    """
    Structured logger for the mesh volume service.

    Wraps a standard library logger and appends keyword context to each
    message as ``message | key=value | key=value``.
    """

    def __init__(self, name: str = ROOT_LOGGER_NAME):
        """
        Initialize the logger.

        Args:
            name: Logger name, typically the module's ``__name__``
        """
        self.logger = logging.getLogger(name)

    def debug(self, message: str, **kwargs) -> None:
        """Log debug message with optional context."""
        self._log_with_context(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs) -> None:
        """Log info message with optional context."""
        self._log_with_context(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs) -> None:
        """Log warning message with optional context."""
        self._log_with_context(logging.WARNING, message, kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs) -> None:
        """Log error message with optional exception info and context."""
        self._log_with_context(logging.ERROR, message, kwargs, exc_info=exc_info)

    def _log_with_context(self, level: int, message: str, context: Dict[str, Any],
                          exc_info: bool = False) -> None:
        if not self.logger.isEnabledFor(level):
            return

        if context:
            context_str = " | ".join(f"{k}={v}" for k, v in context.items())
            full_message = f"{message} | {context_str}"
        else:
            full_message = message

        self.logger.log(level, full_message, exc_info=exc_info)

    def log_exception(self, exception: Exception, context: Optional[Dict[str, Any]] = None) -> None:
        """
        Log an exception with full traceback and context.

        Args:
            exception: The exception to log
            context: Optional context information
        """
        exc_type = type(exception).__name__
        exc_traceback = ''.join(traceback.format_tb(exception.__traceback__))
        error_msg = f"{exc_type}: {exception}\nTraceback:\n{exc_traceback}"

        self.error(error_msg, **(context or {}))


class PerformanceTimer:
    """Context manager for timing code execution."""

    def __init__(self, logger: MeshVolumeLogger, operation_name: str, **context):
        """
        Initialize performance timer.

        Args:
            logger: MeshVolumeLogger instance
            operation_name: Name of the operation being timed
            **context: Extra context logged with the completion message
        """
        self.logger = logger
        self.operation_name = operation_name
        self.context = context
        self.start_time = None
        self.end_time = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        self.logger.debug(f"Starting: {self.operation_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.end_time = time.perf_counter()
        duration = self.end_time - self.start_time

        if exc_type is None:
            self.logger.debug(
                f"Completed: {self.operation_name}",
                duration_seconds=f"{duration:.3f}",
                **self.context
            )
        else:
            self.logger.info(
                f"Failed: {self.operation_name}",
                duration_seconds=f"{duration:.3f}",
                error=str(exc_val)
            )

        return False  # Don't suppress exceptions

    @property
    def elapsed(self) -> float:
        """Get elapsed time in seconds."""
        if self.start_time is None:
            return 0.0
        if self.end_time is None:
            return time.perf_counter() - self.start_time
        return self.end_time - self.start_time


_loggers: Dict[str, MeshVolumeLogger] = {}
_configured = False


def get_logger(name: str = ROOT_LOGGER_NAME) -> MeshVolumeLogger:
    """
    Get or create a logger under the ``mesh_volume`` namespace.

    The package logger receives default console handlers the first time any
    logger is requested, unless :func:`configure_logging` ran before.

    Args:
        name: Logger name

    Returns:
        MeshVolumeLogger instance
    """
    global _configured

    if not _configured:
        _setup_root_logger()
        _configured = True

    if name not in _loggers:
        _loggers[name] = MeshVolumeLogger(name)

    return _loggers[name]


def configure_logging(log_level: str = "INFO", log_dir: Optional[str] = None,
                      stream: Optional[TextIO] = None) -> None:
    """
    Configure global logging settings.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for log files
        stream: Console stream, stdout if None
    """
    global _configured

    level = getattr(logging, log_level.upper(), logging.INFO)
    _setup_root_logger(level, log_dir, stream)
    _configured = True
