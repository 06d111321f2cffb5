import json
import logging
import os
import sys
import threading
from logging.handlers import RotatingFileHandler
from datetime import datetime, timezone
from typing import Dict, Any, Optional, TYPE_CHECKING
from pathlib import Path
from enum import Enum

if TYPE_CHECKING:
    from ..infrastructure.config.settings import LoggingSettings

# One StructuredLogger per name; handlers are attached once per underlying logger
_logger_cache: Dict[str, 'StructuredLogger'] = {}
_cache_lock = threading.RLock()

PLAIN_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_FILE_NAME = "lodgebot.jsonl"


class CustomJsonEncoder(json.JSONEncoder):
    """Serialises the enum statuses and session paths that show up in payloads."""
    def default(self, obj):
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, Path):
            return str(obj)
        return super().default(obj)


class JsonFormatter(logging.Formatter):
    """One JSON object per record: envelope fields plus the ``event_type``/``data`` payload."""

    def format(self, record: logging.LogRecord) -> str:
        payload = record.msg if isinstance(record.msg, dict) else {"message": record.getMessage()}

        log_object = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "funcName": record.funcName,
            "lineno": record.lineno,
            **payload,
        }
        if record.exc_info:
            log_object["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_object, cls=CustomJsonEncoder)


def _build_formatter(structured: bool) -> logging.Formatter:
    return JsonFormatter() if structured else logging.Formatter(PLAIN_FORMAT)


class StructuredLogger:
    """
    Thin wrapper around logging.Logger that emits ``{"event_type", "data"}`` payloads.

    Usage:
        logger = get_logger(__name__)
        logger.info("whatsapp.connection_open", {"previous_attempts": 0})
    """

    def __init__(self, name: str, config: Any, filename: str = None):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, _level_name(config.level), logging.INFO))
        self.logger.propagate = False

        structured = getattr(config, 'structured_logging', True)
        file_enabled = getattr(config, 'file_enabled', False) or bool(filename)

        if getattr(config, 'console_enabled', True):
            self._attach_console(structured)
        if file_enabled:
            log_file = Path(getattr(config, 'log_dir', 'logs')) / (filename or LOG_FILE_NAME)
            self._attach_file(
                str(log_file),
                max_bytes=getattr(config, 'max_file_size_mb', 20) * 1024 * 1024,
                backup_count=getattr(config, 'backup_count', 5),
                structured=structured,
            )

    def _attach_console(self, structured: bool) -> None:
        """Add a stdout handler unless the logger already has one."""
        if any(isinstance(h, logging.StreamHandler) and getattr(h, 'stream', None) is sys.stdout
               for h in self.logger.handlers):
            return

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(_build_formatter(structured))
        self.logger.addHandler(handler)

    def _attach_file(self, log_file: str, max_bytes: int, backup_count: int, structured: bool) -> None:
        """
        Add a RotatingFileHandler for ``log_file`` unless one already writes there.

        Every module logs to the same file by default, so the check keeps each
        record written once.
        """
        target = os.path.abspath(log_file)
        if any(isinstance(h, RotatingFileHandler) and os.path.abspath(h.baseFilename) == target
               for h in self.logger.handlers):
            return

        try:
            os.makedirs(os.path.dirname(target), exist_ok=True)
            handler = RotatingFileHandler(target, maxBytes=max_bytes, backupCount=backup_count,
                                          encoding='utf-8')
        except OSError as e:
            # Logging is not up yet, stderr is the only channel left
            print(f"ERROR: Failed to create file handler for {log_file}: {e}", file=sys.stderr)
            return

        handler.setFormatter(_build_formatter(structured))
        self.logger.addHandler(handler)

    def _log(self, level: int, event_type: str, data: Optional[Dict[str, Any]], exc_info=False):
        self.logger.log(level, {"event_type": event_type, "data": data or {}}, exc_info=exc_info)

    def info(self, event_type: str, data: Dict[str, Any] = None):
        self._log(logging.INFO, event_type, data)

    def warning(self, event_type: str, data: Dict[str, Any] = None, exc_info=False):
        self._log(logging.WARNING, event_type, data, exc_info)

    def error(self, event_type: str, data: Dict[str, Any] = None, exc_info=False):
        """
        Log an error event.

        Args:
            event_type: Dotted event name, e.g. ``whatsapp.connect_failed``
            data: Optional error context data
            exc_info: Attach the active exception's traceback
        """
        self._log(logging.ERROR, event_type, data, exc_info)

    def critical(self, event_type: str, data: Dict[str, Any] = None, exc_info=False):
        self._log(logging.CRITICAL, event_type, data, exc_info)

    def debug(self, event_type: str, data: Dict[str, Any] = None):
        self._log(logging.DEBUG, event_type, data)


def _level_name(level: Any) -> str:
    return str(getattr(level, 'value', level)).upper()


class _DefaultLoggingConfig:
    level = "INFO"
    console_enabled = True
    file_enabled = False
    structured_logging = True


_default_config: Any = _DefaultLoggingConfig()


def configure_logging(config: 'LoggingSettings') -> None:
    """
    Set the logging configuration used by subsequent ``get_logger`` calls.

    Loggers already handed out are rebuilt so the new handlers and level apply.
    Call once from the composition root, before the manager is created.
    """
    global _default_config
    with _cache_lock:
        _default_config = config
        for name in list(_logger_cache):
            underlying = logging.getLogger(name)
            for handler in list(underlying.handlers):
                underlying.removeHandler(handler)
                handler.close()
            _logger_cache[name] = StructuredLogger(name, config)


def get_logger(name: str) -> StructuredLogger:
    """
    Cached StructuredLogger for ``name`` (typically the caller's ``__name__``).

    Double-checked locking keeps creation thread-safe; repeated calls return
    the same instance instead of stacking handlers.
    """
    if name in _logger_cache:
        return _logger_cache[name]

    with _cache_lock:
        if name not in _logger_cache:
            _logger_cache[name] = StructuredLogger(name, _default_config)
        return _logger_cache[name]
