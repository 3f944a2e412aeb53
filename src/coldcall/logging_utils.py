"""Structured logging utilities for the cold-call service."""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

ROOT_LOGGER_NAME = "coldcall"

# LogRecord attributes that are never copied into the "extra" block
_STANDARD_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "message", "taskName",
}


class StructuredFormatter(logging.Formatter):
    """Formatter that emits one JSON object per log record."""

    def __init__(self, service_name: str = "coldcall", include_extra: bool = True):
        """Initialize the structured formatter.

        Args:
            service_name: Name of the service to include in logs
            include_extra: Whether to include extra fields from log record
        """
        super().__init__()
        self.service_name = service_name
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "service": self.service_name,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self.include_extra:
            extra_fields = {}
            for key, value in record.__dict__.items():
                if key in _STANDARD_ATTRS or key.startswith("_"):
                    continue
                try:
                    json.dumps(value)
                    extra_fields[key] = value
                except (TypeError, ValueError):
                    extra_fields[key] = str(value)
            if extra_fields:
                log_data["extra"] = extra_fields

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Human-readable formatter for development environments."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        level = record.levelname
        if self.use_colors:
            level_str = f"{self.COLORS.get(level, '')}{level:8}{self.RESET}"
        else:
            level_str = f"{level:8}"

        formatted = f"[{timestamp}] {level_str} [{record.name}] {record.getMessage()}"

        extras = {
            k: v for k, v in record.__dict__.items()
            if k not in _STANDARD_ATTRS and not k.startswith("_")
        }
        if extras:
            formatted += " " + " ".join(f"{k}={v}" for k, v in extras.items())

        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"

        return formatted


def setup_logging(
    level: Optional[str] = None,
    structured: Optional[bool] = None,
    service_name: str = "coldcall",
) -> logging.Logger:
    """Set up logging configuration for the cold-call service.

    Configures the root logger with a single stdout handler and returns the
    ``coldcall`` package logger. Structured (JSON) output is used outside
    the ``dev`` environment unless overridden.

    Args:
        level: Log level name. Defaults to LOG_LEVEL env var or INFO.
        structured: Whether to use structured JSON logging.
        service_name: Service name to include in structured logs.

    Returns:
        Logger instance for the coldcall package.

    Example:
        >>> logger = setup_logging(level="DEBUG", structured=False)
        >>> logger.info("Placing call", extra={"lead_id": "abc"})
    """
    if level is None:
        level = os.environ.get("LOG_LEVEL", "INFO")
    level = level.upper()
    log_level = getattr(logging, level, logging.INFO)

    if structured is None:
        structured = os.environ.get("APP_ENV", "dev") != "dev"

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    if structured:
        console_handler.setFormatter(StructuredFormatter(service_name=service_name))
    else:
        console_handler.setFormatter(HumanReadableFormatter(use_colors=True))
    root_logger.addHandler(console_handler)

    _configure_third_party_loggers(log_level)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.info(
        "Logging initialized",
        extra={"log_level": level, "structured": structured, "service": service_name},
    )
    return logger


def _configure_third_party_loggers(log_level: int) -> None:
    """Clamp chatty third-party loggers to WARNING unless DEBUG is on."""
    noisy_loggers = [
        "urllib3",
        "httpx",
        "httpcore",
        "openai",
        "googlemaps",
        "sqlalchemy.engine",
    ]
    third_party_level = logging.WARNING if log_level > logging.DEBUG else log_level
    for logger_name in noisy_loggers:
        logging.getLogger(logger_name).setLevel(third_party_level)


class LogContext:
    """Context manager for adding extra fields to log messages.

    Example:
        >>> with LogContext(provider_call_id="call_123"):
        ...     logger.info("Handling webhook")  # includes provider_call_id
    """

    _context: Dict[str, Any] = {}

    def __init__(self, **kwargs: Any):
        self.new_context = kwargs
        self.old_context: Dict[str, Any] = {}

    def __enter__(self) -> "LogContext":
        self.old_context = LogContext._context.copy()
        LogContext._context.update(self.new_context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        LogContext._context = self.old_context

    @classmethod
    def get_context(cls) -> Dict[str, Any]:
        return cls._context.copy()


class ContextAdapter(logging.LoggerAdapter):
    """Logger adapter that automatically includes LogContext fields."""

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = dict(kwargs.get("extra") or {})
        extra.update(LogContext.get_context())
        kwargs["extra"] = extra
        return msg, kwargs
