"""
Logging configuration for the pdf2xls invoice pipeline.

This module sets up logging with a Rich console handler and a daily rotated
log file, including per-document context tracking and timing of slow steps.
"""

import json
import logging
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console
from rich.logging import RichHandler

from pdf2xls.config import get_settings

# Attributes every LogRecord carries; anything else came in through `extra`
_RESERVED_ATTRS = {
    "name",
    "msg",
    "args",
    "created",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "message",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "thread",
    "threadName",
    "taskName",
    "exc_info",
    "exc_text",
    "stack_info",
    "log_context",
}


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


# Per-task context; each asyncio task works on its own copy
_log_context: ContextVar[Dict[str, Any]] = ContextVar("pdf2xls_log_context", default={})


def current_context() -> Dict[str, Any]:
    """Return the logging context of the running task."""
    return dict(_log_context.get())


class ContextFilter(logging.Filter):
    """
    Add context information to log records.

    Every context value becomes a record attribute, and ``log_context`` holds
    them rendered as a ``[key=value ...] `` prefix for text formats.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Add context to the log record."""
        context = _log_context.get()
        for key, value in context.items():
            setattr(record, key, value)
        if context:
            record.log_context = "[" + " ".join(f"{k}={v}" for k, v in context.items()) + "] "
        else:
            record.log_context = ""
        return True


# Global context filter instance
context_filter = ContextFilter()


def setup_logging(
    log_level: Optional[str] = None,
    log_dir: Optional[Path] = None,
    use_structured_logging: Optional[bool] = None,
    retained_files: int = 7,
) -> None:
    """
    Configure logging for the application.

    Args:
        log_level: Logging level (defaults to settings)
        log_dir: Directory for the rotated log file (defaults to settings)
        use_structured_logging: Use JSON structured logging for files
            (defaults to settings)
        retained_files: Number of daily log files to keep
    """
    settings = get_settings()

    log_level = (log_level or settings.log_level).upper()
    log_dir = log_dir or settings.log_dir
    if use_structured_logging is None:
        use_structured_logging = settings.log_structured

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = RichHandler(
        console=Console(stderr=True),
        show_time=False,
        show_path=False,
        rich_tracebacks=True,
        tracebacks_show_locals=settings.dev_mode,
    )
    console_handler.setLevel(log_level)
    console_handler.addFilter(context_filter)
    console_handler.setFormatter(
        logging.Formatter("%(log_context)s%(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    )
    root_logger.addHandler(console_handler)

    if log_dir:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            log_dir / "pdf2xls.log",
            when="midnight",
            backupCount=retained_files,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_handler.addFilter(context_filter)

        if use_structured_logging:
            file_handler.setFormatter(StructuredFormatter())
        else:
            file_handler.setFormatter(
                logging.Formatter(
                    "[%(asctime)s %(levelname).3s] %(name)s - %(log_context)s%(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )

        root_logger.addHandler(file_handler)

    # Configure third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("google").setLevel(logging.WARNING)
    logging.getLogger("googleapiclient").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.debug(
        "Logging configured",
        extra={
            "log_level": log_level,
            "log_dir": str(log_dir) if log_dir else None,
            "structured_logging": use_structured_logging,
        },
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


class LogContext:
    """Context manager for temporary logging context."""

    def __init__(self, **kwargs: Any) -> None:
        """Initialize with context values."""
        self.context = kwargs
        self._token: Optional[Token] = None

    def __enter__(self) -> "LogContext":
        """Enter the context and set values."""
        self._token = _log_context.set({**_log_context.get(), **self.context})
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit the context and restore old values."""
        _log_context.reset(self._token)


def log_performance(func):
    """
    Decorator to log function performance.

    Usage:
        @log_performance
        async def append(self, record, mapping) -> WriteResult:
            ...
    """
    import functools
    import time

    @functools.wraps(func)
    async def async_wrapper(*args, **kwargs):
        """Async wrapper for performance logging."""
        logger = get_logger(func.__module__)
        start_time = time.time()

        try:
            with LogContext(function=func.__name__):
                logger.debug(f"Starting {func.__name__}")
                result = await func(*args, **kwargs)
                duration = time.time() - start_time
                logger.debug(
                    f"Completed {func.__name__} in {duration:.2f}s",
                    extra={"duration_seconds": duration},
                )
                return result
        except Exception as e:
            duration = time.time() - start_time
            logger.debug(
                f"Failed {func.__name__} after {duration:.2f}s",
                extra={"duration_seconds": duration, "error": str(e)},
            )
            raise

    @functools.wraps(func)
    def sync_wrapper(*args, **kwargs):
        """Sync wrapper for performance logging."""
        logger = get_logger(func.__module__)
        start_time = time.time()

        try:
            with LogContext(function=func.__name__):
                logger.debug(f"Starting {func.__name__}")
                result = func(*args, **kwargs)
                duration = time.time() - start_time
                logger.debug(
                    f"Completed {func.__name__} in {duration:.2f}s",
                    extra={"duration_seconds": duration},
                )
                return result
        except Exception as e:
            duration = time.time() - start_time
            logger.debug(
                f"Failed {func.__name__} after {duration:.2f}s",
                extra={"duration_seconds": duration, "error": str(e)},
            )
            raise

    import asyncio
    if asyncio.iscoroutinefunction(func):
        return async_wrapper
    return sync_wrapper
