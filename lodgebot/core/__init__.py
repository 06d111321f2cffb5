"""
Core module for lodge-bot: logging, exceptions, event bus and scheduling.
"""

from .logger import get_logger, configure_logging, StructuredLogger
from .utils import import_from_path
from .exceptions import (
    ConnectionManagerError,
    SessionStorageError,
    SessionNotOpenError,
    TransportFactoryError,
)

__all__ = [
    'get_logger',
    'import_from_path',
    'configure_logging',
    'StructuredLogger',
    'ConnectionManagerError',
    'SessionStorageError',
    'SessionNotOpenError',
    'TransportFactoryError',
]
