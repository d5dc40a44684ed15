"""
Structured logging with correlation IDs.

Text output in development, JSON (python-json-logger) in production.

Usage:
    from observability import get_logger

    logger = get_logger(__name__)
    logger.info("Task created", extra={"task_id": 12, "project_id": 3})
"""

import logging
import os
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Iterator, Optional

from pythonjsonlogger import jsonlogger

SERVICE_NAME = "dev-tracker-backend"

_correlation_id_ctx: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> Optional[str]:
    return _correlation_id_ctx.get()


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id_ctx.set(correlation_id)


def generate_correlation_id() -> str:
    return f"req-{uuid.uuid4().hex[:16]}"


@contextmanager
def correlation_id_context(correlation_id: Optional[str] = None) -> Iterator[str]:
    """Bind a correlation ID (generated when absent) for the enclosed block."""
    value = correlation_id or generate_correlation_id()
    token = _correlation_id_ctx.set(value)
    try:
        yield value
    finally:
        _correlation_id_ctx.reset(token)


class CorrelationIDFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or "none"
        return True


class SensitiveDataFilter(logging.Filter):
    """Redacts credentials from log arguments and extra fields."""

    SENSITIVE_KEYS = {
        "password", "password_hash", "token", "access_token", "authorization",
        "api_key", "secret", "cron_secret",
    }

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.args, dict):
            record.args = self._redact(record.args)
        for key in list(record.__dict__.keys()):
            if key.lower() in self.SENSITIVE_KEYS:
                setattr(record, key, "[REDACTED]")
        return True

    def _redact(self, data: Any) -> Any:
        if isinstance(data, dict):
            return {
                k: "[REDACTED]" if str(k).lower() in self.SENSITIVE_KEYS else self._redact(v)
                for k, v in data.items()
            }
        if isinstance(data, list):
            return [self._redact(item) for item in data]
        return data


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["correlation_id"] = getattr(record, "correlation_id", "none")
        log_record["environment"] = os.getenv("ENVIRONMENT", "development")
        log_record["service"] = SERVICE_NAME
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)


def setup_logging() -> None:
    """
    Configure the root logger.

    Environment variables:
    - LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL
    - LOG_FORMAT: json or text (default: json in production, text elsewhere)
    """
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    log_format = os.getenv("LOG_FORMAT", "json" if os.getenv("ENVIRONMENT") == "production" else "text")

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    if log_format == "json":
        handler.setFormatter(CustomJsonFormatter(
            "%(timestamp)s %(level)s %(logger)s %(correlation_id)s %(message)s",
            rename_fields={"timestamp": "@timestamp"},
        ))
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(correlation_id)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
    handler.addFilter(CorrelationIDFilter())
    handler.addFilter(SensitiveDataFilter())

    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


setup_logging()
