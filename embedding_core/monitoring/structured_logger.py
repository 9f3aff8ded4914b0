"""
Structured logging with correlation IDs.

Store operations log through the standard library. Command-line runs wrap
them in a correlation context and report each operation (load, append,
search, dump) as a structured event with its duration.
"""

import contextvars
import json
import logging
import threading
import time
import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog


correlation_id_context: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)


class CorrelationIdProcessor:
    """Processor to add the current correlation ID to log events."""

    def __call__(self, logger, method_name, event_dict):
        correlation_id = correlation_id_context.get()
        if correlation_id:
            event_dict["correlation_id"] = correlation_id
        return event_dict


class TimestampProcessor:
    """Processor to add consistent timestamps."""

    def __call__(self, logger, method_name, event_dict):
        event_dict["timestamp"] = time.time()
        event_dict["timestamp_iso"] = datetime.now(timezone.utc).isoformat()
        return event_dict


class ComponentProcessor:
    """Processor to add component information."""

    def __init__(self, component: str):
        self.component = component

    def __call__(self, logger, method_name, event_dict):
        event_dict["component"] = self.component
        return event_dict


class ThreadProcessor:
    """Processor to add the emitting thread."""

    def __call__(self, logger, method_name, event_dict):
        event_dict["thread_name"] = threading.current_thread().name
        return event_dict


class StructuredLogger:
    """
    Structured logger with correlation ID support.

    Wraps a structlog stdlib logger so events flow through the handlers
    installed by ``configure_logging``.
    """

    def __init__(self, name: str, component: Optional[str] = None, json_format: bool = False):
        """
        Initialize structured logger.

        Args:
            name: Logger name
            component: Component name for logging context
            json_format: Render events as JSON instead of console text
        """
        self.name = name
        self.component = component or name
        self.json_format = json_format

        self._configure_structlog()
        self.logger = structlog.get_logger(name)

    def _configure_structlog(self):
        """Configure structlog processors and renderer."""
        renderer = (
            structlog.processors.JSONRenderer()
            if self.json_format
            else structlog.dev.ConsoleRenderer(colors=False)
        )
        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                TimestampProcessor(),
                CorrelationIdProcessor(),
                ComponentProcessor(self.component),
                ThreadProcessor(),
                renderer,
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=False,
        )

    def debug(self, message: str, **kwargs):
        self.logger.debug(message, **kwargs)

    def info(self, message: str, **kwargs):
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs):
        self.logger.warning(message, **kwargs)

    def error(self, message: str, error: Optional[Exception] = None, **kwargs):
        """Log error message with optional exception."""
        if error:
            kwargs.update(
                {
                    "error_type": type(error).__name__,
                    "error_message": str(error),
                }
            )
        self.logger.error(message, **kwargs)

    def with_context(self, **context) -> "StructuredLogger":
        """Create a new logger with additional bound context."""
        new_logger = StructuredLogger.__new__(StructuredLogger)
        new_logger.name = self.name
        new_logger.component = self.component
        new_logger.json_format = self.json_format
        new_logger.logger = self.logger.bind(**context)
        return new_logger


class LoggingContext:
    """Context manager that sets a correlation ID for the enclosed block."""

    def __init__(self, correlation_id: Optional[str] = None):
        self.correlation_id = correlation_id or str(uuid.uuid4())
        self._token = None

    def __enter__(self):
        self._token = correlation_id_context.set(self.correlation_id)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        correlation_id_context.reset(self._token)


class OperationLogger:
    """Logger for tracking operations with timing."""

    def __init__(self, logger: StructuredLogger, operation: str):
        """
        Initialize operation logger.

        Args:
            logger: Structured logger instance
            operation: Operation name
        """
        self.logger = logger
        self.operation = operation
        self.start_time = None
        self.duration_ms = None
        self.context = {}

    def start(self, **context):
        self.start_time = time.time()
        self.context = context
        self.logger.debug(
            f"Starting operation: {self.operation}",
            operation=self.operation,
            operation_status="started",
            **context,
        )

    def success(self, **additional_context):
        self.duration_ms = (time.time() - self.start_time) * 1000
        self.logger.info(
            f"Operation completed: {self.operation}",
            operation=self.operation,
            operation_status="success",
            duration_ms=round(self.duration_ms, 3),
            **self.context,
            **additional_context,
        )

    def error(self, error: Exception, **additional_context):
        self.duration_ms = (time.time() - self.start_time) * 1000
        self.logger.error(
            f"Operation failed: {self.operation}",
            error=error,
            operation=self.operation,
            operation_status="error",
            duration_ms=round(self.duration_ms, 3),
            **self.context,
            **additional_context,
        )

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            self.error(exc_val)
        else:
            self.success()


class JSONFormatter(logging.Formatter):
    """JSON formatter for standard library log records."""

    def format(self, record):
        log_entry = {
            "timestamp": record.created,
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        correlation_id = correlation_id_context.get()
        if correlation_id:
            log_entry["correlation_id"] = correlation_id

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


def get_logger(name: str, component: Optional[str] = None, json_format: bool = False) -> StructuredLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name
        component: Component name for context
        json_format: Render events as JSON

    Returns:
        Configured structured logger
    """
    return StructuredLogger(name, component, json_format)


def configure_logging(
    log_level: str = "INFO",
    json_format: bool = False,
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
):
    """
    Configure global logging settings.

    Args:
        log_level: Minimum log level
        json_format: Whether to use JSON formatting
        log_format: Format string for plain-text records
    """
    level = getattr(logging, log_level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(log_format))
    root_logger.addHandler(console_handler)
