"""
Structured logging configuration for the inventory sync service.

JSON output in production, human-readable lines in debug mode, and
context propagation (trace id, user id, extra fields) through ContextVars so
that every log line emitted during one sync carries the same identifiers.
"""
import json
import logging
import sys
from contextvars import ContextVar
from typing import Any, Dict, Optional

from inventory_sync.core.config import get_settings

settings = get_settings()

trace_id_var: ContextVar[Optional[str]] = ContextVar("trace_id", default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)
extra_context_var: ContextVar[Dict[str, Any]] = ContextVar("extra_context", default={})

_RESERVED_ATTRS = frozenset(
    (
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "message", "pathname", "process", "processName", "relativeCreated",
        "thread", "threadName", "exc_info", "exc_text", "stack_info",
        "taskName",
    )
)


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Context variables are merged first, then any ``extra=`` fields passed to
    the logging call, so call-site values win over ambient context.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        trace_id = trace_id_var.get()
        if trace_id:
            log_data["trace_id"] = trace_id

        user_id = user_id_var.get()
        if user_id:
            log_data["user_id"] = user_id

        log_data.update(extra_context_var.get())

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_data[key] = value

        return json.dumps(log_data, default=str, ensure_ascii=False)


def setup_logging() -> None:
    """
    Configure the root logger.

    Structured JSON for production, human-readable for development.
    """
    level = logging.DEBUG if settings.DEBUG else logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    if settings.DEBUG:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = StructuredFormatter()

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Third-party noise
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("celery").setLevel(logging.INFO)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.DEBUG else logging.WARNING
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Context manager for adding context to logs.

    Usage:
        with LogContext(trace_id="abc", user_id="123", steam_id="7656..."):
            logger.info("This log will include trace_id, user_id and steam_id")
    """

    def __init__(
        self,
        trace_id: Optional[str] = None,
        user_id: Optional[str] = None,
        **kwargs: Any,
    ):
        self.trace_id = trace_id
        self.user_id = user_id
        self.additional_context = kwargs
        self._tokens: list = []

    def __enter__(self) -> "LogContext":
        if self.trace_id:
            self._tokens.append((trace_id_var, trace_id_var.set(self.trace_id)))

        if self.user_id:
            self._tokens.append((user_id_var, user_id_var.set(self.user_id)))

        if self.additional_context:
            merged = {**extra_context_var.get(), **self.additional_context}
            self._tokens.append((extra_context_var, extra_context_var.set(merged)))

        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()


def log_operation(
    logger: logging.Logger,
    operation: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """Log a named operation with context fields."""
    logger.log(
        level,
        f"Operation: {operation}",
        extra={"operation": operation, **context},
    )


def log_performance(
    logger: logging.Logger,
    operation: str,
    duration_seconds: float,
    **context: Any,
) -> None:
    """Log how long an operation took."""
    logger.info(
        f"Operation {operation} completed in {duration_seconds:.3f}s",
        extra={
            "operation": operation,
            "duration_seconds": duration_seconds,
            "performance": True,
            **context,
        },
    )
