"""
Structured logging for the Footballers Insight API.

JSON lines in production, plain text in development. Every record carries
the service name, the environment and, inside a request, the request id
assigned by the HTTP middleware so all lines of one request can be joined.
Event fields are passed as ``extra={"extra_fields": {...}}``.
"""
import contextvars
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

from core.config import settings

SERVICE_NAME = "footballers-insight-api"
REQUEST_ID_HEADER = "X-Request-ID"

_request_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("request_id", default=None)


def get_request_id() -> Optional[str]:
    return _request_id.get()


def bind_request_id(value: Optional[str] = None) -> contextvars.Token:
    """Bind a request id (a new one when none is given) to the current context."""
    return _request_id.set(value or uuid4().hex)


def reset_request_id(token: contextvars.Token) -> None:
    _request_id.reset(token)


class RequestContextFilter(logging.Filter):
    """Stamp the request id onto records so text and JSON output both show it."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": SERVICE_NAME,
            "environment": settings.ENVIRONMENT,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id and request_id != "-":
            log_data["request_id"] = request_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            # Event fields never overwrite the envelope
            for key, value in extra_fields.items():
                log_data.setdefault(key, value)

        return json.dumps(log_data, default=str)


def setup_logging():
    """Configure the root logger from LOG_LEVEL, LOG_FORMAT and ENVIRONMENT."""
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    if settings.LOG_FORMAT == "json" or settings.ENVIRONMENT == "production":
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.addFilter(RequestContextFilter())
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Set levels for noisy libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("multipart").setLevel(logging.WARNING)

    return root_logger
