"""Logging configuration utilities."""

import logging
import sys
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

import structlog
from structlog.contextvars import bind_contextvars


SENSITIVE_KEYS = {
    "password",
    "secret",
    "token",
    "authorization",
    "aws_secret_access_key",
    "aws_session_token",
}

# Presigned S3 and CI artifact links carry credentials in the query string
URL_KEYS = {"url", "release_url", "browser_download_url"}


def _redact_query(url: str) -> str:
    parts = urlsplit(url)
    if not parts.query:
        return url
    return urlunsplit(parts._replace(query="[REDACTED]"))


def _redact_sensitive(_, __, event_dict: dict) -> dict:
    """Redact sensitive fields in the structured log."""
    for key in list(event_dict.keys()):
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = "[REDACTED]"
        elif key.lower() in URL_KEYS and isinstance(event_dict[key], str):
            event_dict[key] = _redact_query(event_dict[key])
    return event_dict


def setup_logging(log_level: str = "INFO", log_format: str = "console") -> None:
    """Configure structured logging."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        _redact_sensitive,
    ]

    if log_format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_request_context(request_id: Optional[str] = None, release_id: Optional[str] = None) -> None:
    """Bind correlation fields for request logs using contextvars."""
    if request_id:
        bind_contextvars(request_id=request_id)
    if release_id:
        bind_contextvars(release_id=release_id)
