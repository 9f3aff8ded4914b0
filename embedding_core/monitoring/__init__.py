"""
Logging support for the embedding store.
"""

from .structured_logger import (
    StructuredLogger,
    LoggingContext,
    OperationLogger,
    JSONFormatter,
    get_logger,
    configure_logging,
)

__all__ = [
    'StructuredLogger',
    'LoggingContext',
    'OperationLogger',
    'JSONFormatter',
    'get_logger',
    'configure_logging',
]
