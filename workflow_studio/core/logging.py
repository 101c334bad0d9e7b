"""Logging configuration for the workflow studio engine."""

import json
import logging
import sys
import traceback
from contextlib import contextmanager
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class StructuredFormatter(logging.Formatter):
    """Render log records as single-line JSON documents."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info)
            }

        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            log_entry.update(extra_fields)

        return json.dumps(log_entry, default=str)


_run_context: ContextVar[Optional[Dict[str, Any]]] = ContextVar("workflow_studio_run_context", default=None)


class RunContextFilter(logging.Filter):
    """Stamp the active workflow/execution IDs onto every record.

    The fields live in a context variable, so records logged from other
    threads or tasks never pick up a run they are not part of.
    """

    def set_context(self, **kwargs) -> Token:
        return _run_context.set({**(_run_context.get() or {}), **kwargs})

    def clear_context(self):
        _run_context.set(None)

    def reset_context(self, token: Token):
        _run_context.reset(token)

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "extra_fields"):
            record.extra_fields = {}
        record.extra_fields.update(_run_context.get() or {})
        return True


_context_filter = RunContextFilter()


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    structured: bool = False,
    max_size: int = 10 * 1024 * 1024,
    backup_count: int = 5
) -> logging.Logger:
    """
    Configure logging for the workflow studio.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for rotating log output
        log_format: Custom log format string for plain-text output
        structured: Whether to emit JSON lines instead of plain text
        max_size: Maximum log file size in bytes before rotation
        backup_count: Number of rotated files to keep

    Returns:
        Root logger instance
    """
    if structured:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            fmt=log_format or DEFAULT_LOG_FORMAT,
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(_context_filter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_size,
            backupCount=backup_count
        )
        file_handler.setFormatter(formatter)
        file_handler.addFilter(_context_filter)
        root_logger.addHandler(file_handler)

    # Third-party noise
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    logging.getLogger("workflow_studio.core").setLevel(logging.DEBUG if level.upper() == "DEBUG" else logging.INFO)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for the given name."""
    return logging.getLogger(name)


def set_logging_context(**kwargs):
    """Set context fields for subsequent log messages in the current thread or task."""
    _context_filter.set_context(**kwargs)


def clear_logging_context():
    """Clear all logging context fields."""
    _context_filter.clear_context()


@contextmanager
def logging_context(**kwargs):
    """Scope context fields to a block, e.g. one workflow run."""
    token = _context_filter.set_context(**kwargs)
    try:
        yield
    finally:
        _context_filter.reset_context(token)


def log_with_context(logger: logging.Logger, level: int, message: str, **context):
    """Log a message with additional structured fields."""
    logger.log(level, message, extra={"extra_fields": context})
