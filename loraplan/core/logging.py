"""
Logging configuration for the LoRa link planner.

Console output is always enabled. In production records are emitted as JSON
so they can be shipped to a log aggregator; a rotating file handler is added
when LOG_FILE is configured. Every record carries a request_id, set per HTTP
request by the middleware in main.py.
"""
from __future__ import annotations

import json
import logging
import logging.config
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Request, Response

from .config import Settings

_request_id: ContextVar[str] = ContextVar("request_id", default="system")


class RequestIdFilter(logging.Filter):
    """Add request_id to log records from the current request context."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()  # type: ignore
        return True


class JsonFormatter(logging.Formatter):
    """
    Format log records as JSON for structured logging.

    Only active in production; in development the plain format string is used.
    """

    def __init__(self, *args: Any, environment: str = "development", **kwargs: Any) -> None:
        self.is_prod = environment.lower() == "production"
        super().__init__(*args, **kwargs)

    def format(self, record: logging.LogRecord) -> str:
        if not self.is_prod:
            return super().format(record)

        log_record: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "system"),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record, ensure_ascii=False)


def setup_logging(settings: Settings) -> None:
    """
    Configure logging for the application.

    Args:
        settings: Application settings (level, format, optional log file).
    """
    handlers: Dict[str, Dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": "DEBUG",
            "formatter": "json",
            "filters": ["request_id"],
            "stream": "ext://sys.stdout",
        }
    }
    if settings.LOG_FILE:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": "INFO",
            "formatter": "json",
            "filters": ["request_id"],
            "filename": settings.LOG_FILE,
            "maxBytes": 10 * 1024 * 1024,  # 10MB
            "backupCount": 5,
            "encoding": "utf-8",
        }

    log_config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"request_id": {"()": RequestIdFilter}},
        "formatters": {
            "json": {
                "()": JsonFormatter,
                "fmt": settings.LOG_FORMAT,
                "datefmt": "%Y-%m-%d %H:%M:%S",
                "environment": settings.ENVIRONMENT,
            },
        },
        "handlers": handlers,
        "loggers": {
            "loraplan": {
                "handlers": list(handlers),
                "level": settings.LOG_LEVEL,
                "propagate": False,
            },
            "httpx": {
                "handlers": ["console"],
                "level": "WARNING",
                "propagate": False,
            },
        },
    }

    logging.config.dictConfig(log_config)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Args:
        name: The name of the logger. If None, returns the root logger.

    Returns:
        A configured logger instance.
    """
    return logging.getLogger(name)


def bind_request_id(request: Request) -> str:
    """Assign (or reuse) a correlation id for the request and bind it to logging."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.correlation_id = request_id
    _request_id.set(request_id)
    return request_id


def log_request(request: Request, response: Optional[Response] = None, error: Optional[Exception] = None) -> None:
    """
    Log an HTTP request with its response or error.

    Args:
        request: The FastAPI Request object.
        response: The response (if successful).
        error: Any exception that occurred during request processing.
    """
    logger = get_logger("loraplan.http")
    client_host = request.client.host if request.client else "unknown"

    if error:
        logger.error(
            "Request failed: %s %s from %s (%s)",
            request.method, request.url.path, client_host, error,
        )
    elif response:
        logger.info(
            "Request processed: %s %s -> %s",
            request.method, request.url.path, response.status_code,
        )
    else:
        logger.info("Request started: %s %s from %s", request.method, request.url.path, client_host)
