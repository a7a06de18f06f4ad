"""
Logging setup for the background host.

Development gets colored single-line console output; production gets JSON
lines. Both also go to rotating files under ``log_dir``. Per-line context is
passed as ``extra={"extra_data": {...}}`` and every handler runs the
``RedactingFilter`` first, so a device token that slips into a message or
its context never reaches a sink.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any

from security import redact_secrets, sanitize_storage_for_logging

LOG_FILE_NAME = "background_host.log"
ERROR_FILE_NAME = "errors.log"

# Libraries that are chatty at DEBUG/INFO
QUIET_LOGGERS = {
    "websockets": logging.WARNING,
    "aiohttp": logging.WARNING,
    "asyncio": logging.WARNING,
}


class RedactingFilter(logging.Filter):
    """Scrubs credentials from the message and its ``extra_data`` in place"""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_secrets(message)
        if redacted != message:
            record.msg = redacted
            record.args = None

        extra_data = getattr(record, "extra_data", None)
        if isinstance(extra_data, dict):
            record.extra_data = sanitize_storage_for_logging(extra_data)
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, with ``extra_data`` merged at the top level"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.levelno >= logging.WARNING:
            entry["location"] = f"{record.module}:{record.funcName}:{record.lineno}"

        entry.update(getattr(record, "extra_data", None) or {})

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Compact colored lines for a terminal"""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[92m",      # Green
        "WARNING": "\033[93m",   # Yellow
        "ERROR": "\033[91m",     # Red
        "CRITICAL": "\033[95m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        color = self.COLORS.get(record.levelname, "")
        line = f"{stamp} {color}{record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            line += "  " + " ".join(f"{key}={value}" for key, value in extra_data.items())

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class LoggingConfig:
    """Builds the root logger's handlers from ``LOGGING_CONFIG``-shaped settings"""

    def __init__(self,
                 log_level: str = "INFO",
                 log_dir: Optional[str] = None,
                 enable_file_logging: bool = True,
                 enable_console_logging: bool = True,
                 structured_logging: bool = False,
                 max_log_size_mb: int = 10,
                 backup_count: int = 5):
        self.log_level = logging.getLevelName(log_level.upper())
        if not isinstance(self.log_level, int):
            raise ValueError(f"Unknown log level: {log_level}")
        self.log_dir = Path(log_dir or "./logs")
        self.enable_file_logging = enable_file_logging
        self.enable_console_logging = enable_console_logging
        self.structured_logging = structured_logging
        self.max_bytes = max_log_size_mb * 1024 * 1024
        self.backup_count = backup_count

    def _formatter(self, console: bool) -> logging.Formatter:
        if self.structured_logging:
            return StructuredFormatter()
        if console:
            return ColoredConsoleFormatter()
        return logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")

    def _rotating_handler(self, file_name: str, level: int) -> logging.Handler:
        handler = logging.handlers.RotatingFileHandler(
            self.log_dir / file_name,
            maxBytes=self.max_bytes,
            backupCount=self.backup_count,
            encoding="utf-8",
        )
        handler.setLevel(level)
        handler.setFormatter(self._formatter(console=False))
        return handler

    def build_handlers(self):
        handlers = []
        if self.enable_console_logging:
            console = logging.StreamHandler(sys.stdout)
            console.setLevel(self.log_level)
            console.setFormatter(self._formatter(console=True))
            handlers.append(console)

        if self.enable_file_logging:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            handlers.append(self._rotating_handler(LOG_FILE_NAME, self.log_level))
            handlers.append(self._rotating_handler(ERROR_FILE_NAME, logging.ERROR))

        redactor = RedactingFilter()
        for handler in handlers:
            handler.addFilter(redactor)
        return handlers

    def configure(self) -> None:
        """Replace the root logger's handlers with this configuration's"""
        root = logging.getLogger()
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()

        root.setLevel(self.log_level)
        for handler in self.build_handlers():
            root.addHandler(handler)

        for name, level in QUIET_LOGGERS.items():
            logging.getLogger(name).setLevel(level)

        logging.getLogger(__name__).info("Logging configured", extra={"extra_data": {
            "level": logging.getLevelName(self.log_level),
            "console": self.enable_console_logging,
            "files": str(self.log_dir) if self.enable_file_logging else None,
            "json": self.structured_logging,
        }})


def setup_logging(config_dict: Optional[Dict[str, Any]] = None) -> LoggingConfig:
    """
    Configure logging for the host process.

    Args:
        config_dict: Overrides for ``config.LOGGING_CONFIG``
    """
    from config import LOGGING_CONFIG

    logging_config = LoggingConfig(**{**LOGGING_CONFIG, **(config_dict or {})})
    logging_config.configure()
    return logging_config


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Logging is not configured implicitly; ``main.py`` calls ``setup_logging``
    once at startup so library code and tests keep the host's handlers out.
    """
    return logging.getLogger(name)


def log_with_context(logger: logging.Logger, level: int, message: str, **context) -> None:
    """Log a message with additional context data"""
    logger.log(level, message, extra={"extra_data": context})


def log_api_call(logger: logging.Logger, service: str, endpoint: str,
                 status_code: int, duration_ms: float, **context) -> None:
    """Log one HTTP round-trip at debug level"""
    log_with_context(logger, logging.DEBUG, f"{service} {endpoint} -> {status_code}",
                     service=service, endpoint=endpoint, status_code=status_code,
                     duration_ms=round(duration_ms, 1), **context)


def log_error_with_context(logger: logging.Logger, error: Exception,
                           operation: str, **context) -> None:
    """Log a failed operation with its exception type"""
    log_with_context(logger, logging.ERROR, f"Error in {operation}: {error}",
                     operation=operation, error_type=type(error).__name__,
                     error_message=str(error), **context)
