"""Structured logging utilities for the lead pipeline service.

Services log with ``extra={"lead_id": ..., "provider": ...}``. The JSON
formatter lifts those pipeline context fields to the top level of each line
so log queries can filter by lead or provider; any other extras are nested
under ``"extra"``.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

SERVICE_NAME = "lead-pipeline"
ROOT_LOGGER_NAME = "lead_pipeline"

CONTEXT_FIELDS = ("lead_id", "provider", "step", "domain")

# Standard LogRecord attributes, never copied into "extra"
_STANDARD_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "message", "taskName",
}


def _record_extras(record: logging.LogRecord) -> Dict[str, Any]:
    extras = {}
    for key, value in record.__dict__.items():
        if key in _STANDARD_ATTRS or key.startswith("_"):
            continue
        try:
            json.dumps(value)
        except (TypeError, ValueError):
            value = str(value)
        extras[key] = value
    return extras


class StructuredFormatter(logging.Formatter):
    """Renders each record as one JSON line."""

    def __init__(self, service_name: str = SERVICE_NAME):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extras = _record_extras(record)
        for key in CONTEXT_FIELDS:
            if key in extras:
                log_data[key] = extras.pop(key)
        if extras:
            log_data["extra"] = extras

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Single-line formatter for development, with context fields appended."""

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
        timestamp = datetime.now(timezone.utc).strftime("%H:%M:%S")
        level = f"{record.levelname:8}"
        if self.use_colors:
            level = f"{self.COLORS.get(record.levelname, '')}{level}{self.RESET}"

        context = " ".join(
            f"{key}={getattr(record, key)}" for key in CONTEXT_FIELDS if hasattr(record, key)
        )
        line = f"{timestamp} {level} {record.name}: {record.getMessage()}"
        if context:
            line = f"{line} ({context})"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    level: Optional[str] = None,
    structured: Optional[bool] = None,
    service_name: str = SERVICE_NAME,
) -> logging.Logger:
    """Set up logging configuration for the lead pipeline.

    Configures the root logger with a single stdout handler.

    Args:
        level: Log level name. Defaults to the LOG_LEVEL env var or INFO.
        structured: JSON output. Defaults to True unless APP_ENV is 'dev'.
        service_name: Service name included in JSON lines.

    Returns:
        Logger instance for the lead_pipeline package

    Example:
        >>> logger = setup_logging(level="DEBUG", structured=False)
        >>> logger.info("Enriching lead", extra={"lead_id": "abc"})
    """
    level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    log_level = getattr(logging, level, logging.INFO)

    if structured is None:
        structured = os.environ.get("APP_ENV", "prod") != "dev"

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    if structured:
        console_handler.setFormatter(StructuredFormatter(service_name=service_name))
    else:
        console_handler.setFormatter(HumanReadableFormatter())
    root_logger.addHandler(console_handler)

    # Provider SDKs and SQLAlchemy only log at DEBUG
    third_party_level = logging.WARNING if log_level > logging.DEBUG else log_level
    for name in ("urllib3", "requests", "httpx", "openai", "twilio.http_client", "sqlalchemy.engine"):
        logging.getLogger(name).setLevel(third_party_level)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.debug("Logging initialized", extra={"log_level": level, "structured": structured})
    return logger
