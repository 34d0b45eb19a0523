"""
Logging configuration for structured text logging.

The server calls setup_logging() once at startup; the viewer library only
uses get_logger() and leaves handler configuration to its host.
"""
import logging
import sys
from typing import Any, Dict, Optional

ROOT_LOGGER_NAME = "lessonguard"

# Standard LogRecord attributes, never rendered as extra fields
_RECORD_FIELDS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "message", "pathname", "process", "processName", "relativeCreated",
    "thread", "threadName", "exc_info", "exc_text", "stack_info",
    "taskName",
}

# Extra fields whose values must never reach a log sink in clear
SENSITIVE_FIELDS = {"token", "access_token", "master_key", "content_key", "plaintext"}


def mask_token(token: Optional[str], visible: int = 8) -> str:
    """Return a log-safe prefix of a bearer/playback token."""
    if not token:
        return "<none>"
    return f"{token[:visible]}..."


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured text logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with structured key-value pairs."""
        # Base message
        timestamp = self.formatTime(record, "%Y-%m-%d %H:%M:%S")
        base_msg = (
            f"{timestamp}.{int(record.msecs):03d} | {record.levelname:8} | "
            f"{record.name} | {record.getMessage()}"
        )

        # Add extra fields if present
        extra_fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_FIELDS
        }

        if extra_fields:
            base_msg += " | " + " ".join(f"{k}={v}" for k, v in extra_fields.items())

        # Add exception info if present
        if record.exc_info:
            base_msg += "\n" + self.formatException(record.exc_info)

        return base_msg


def setup_logging() -> logging.Logger:
    """
    Configure and return the application logger.

    Supports per-module log level configuration via environment variables:
    - APP_LOG_LEVEL: Application logs (default: LOG_LEVEL)
    - SQLALCHEMY_LOG_LEVEL: SQLAlchemy logs (default: WARNING)
    - UVICORN_LOG_LEVEL: Uvicorn logs (default: INFO)
    - HTTPX_LOG_LEVEL: HTTPX logs (default: WARNING)
    - ASYNCPG_LOG_LEVEL: AsyncPG logs (default: WARNING)

    Returns:
        Configured logger instance
    """
    from lessonguard.config import settings

    # Get application root logger
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    app_log_level = (settings.APP_LOG_LEVEL or settings.LOG_LEVEL).upper()
    logger.setLevel(getattr(logging, app_log_level))

    # Remove existing handlers to avoid duplicates on re-import
    logger.handlers.clear()

    # Console handler with structured formatter
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, app_log_level))
    console_handler.setFormatter(StructuredFormatter())
    logger.addHandler(console_handler)

    # Don't propagate to root logger
    logger.propagate = False

    # Configure third-party library log levels
    log_config = _configure_third_party_loggers()
    logger.debug("Logging configured", extra={"app_log_level": app_log_level, **log_config})

    return logger


def _configure_third_party_loggers() -> Dict[str, str]:
    """
    Configure log levels for third-party libraries.

    Returns:
        Dictionary mapping settings names to configured levels
    """
    from lessonguard.config import settings

    levels = {
        "SQLALCHEMY_LOG_LEVEL": (settings.SQLALCHEMY_LOG_LEVEL or "WARNING", ["sqlalchemy.engine", "sqlalchemy.pool"]),
        "UVICORN_LOG_LEVEL": (settings.UVICORN_LOG_LEVEL or "INFO", ["uvicorn", "uvicorn.access"]),
        "HTTPX_LOG_LEVEL": (settings.HTTPX_LOG_LEVEL or "WARNING", ["httpx"]),
        "ASYNCPG_LOG_LEVEL": (settings.ASYNCPG_LOG_LEVEL or "WARNING", ["asyncpg"]),
    }

    config = {}
    for setting_name, (level, logger_names) in levels.items():
        level = level.upper()
        for logger_name in logger_names:
            logging.getLogger(logger_name).setLevel(getattr(logging, level))
        config[setting_name.lower()] = level

    return config


class StructuredLogger:
    """Wrapper around logging.Logger that supports keyword arguments for structured logging."""

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    def _log(self, level: int, msg: str, *args, **kwargs):
        """Log with structured extra fields."""
        # Extract exc_info if present
        exc_info = kwargs.pop("exc_info", False)

        extra: Dict[str, Any] = {}
        for key, value in kwargs.items():
            # Redact secrets before they reach a handler
            if key in SENSITIVE_FIELDS:
                value = "<redacted>"
            if key in _RECORD_FIELDS:
                # Prefix reserved fields with 'ctx_'
                key = f"ctx_{key}"
            extra[key] = value

        self._logger.log(level, msg, *args, extra=extra, exc_info=exc_info, stacklevel=3)

    def isEnabledFor(self, level: int) -> bool:
        return self._logger.isEnabledFor(level)

    def debug(self, msg: str, *args, **kwargs):
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self._log(logging.ERROR, msg, *args, **kwargs)

    def critical(self, msg: str, *args, **kwargs):
        self._log(logging.CRITICAL, msg, *args, **kwargs)


def get_logger(name: str) -> StructuredLogger:
    """
    Get a structured logger with the specified name under the lessonguard namespace.

    Args:
        name: Logger name (will be prefixed with 'lessonguard.')

    Returns:
        StructuredLogger instance
    """
    return StructuredLogger(logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}"))

