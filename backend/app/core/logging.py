"""
Structured logging configuration using structlog.

JSON lines in production, coloured console output elsewhere. Every event
carries the request id bound by `RequestLoggingMiddleware`, so a booking's
notifications and e-mails can be traced back to the request that caused
them. Guest e-mail addresses and phone numbers are masked before rendering.
"""

import logging
import sys
from typing import Any, List

import structlog

from app.core.config import get_settings

# Event keys whose values identify a guest
EMAIL_KEYS = frozenset({"email", "to", "customer_email"})
PHONE_KEYS = frozenset({"contact_number", "phone_number"})

QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "stripe", "aiosmtplib")


def mask_email(value: str) -> str:
    local, sep, domain = value.partition("@")
    if not sep or not local:
        return "***"
    return f"{local[0]}***@{domain}"


def mask_phone(value: str) -> str:
    digits = "".join(c for c in value if c.isdigit())
    return f"***{digits[-4:]}" if len(digits) >= 4 else "***"


def mask_pii(_, __, event_dict: dict) -> dict:
    for key, value in event_dict.items():
        if not isinstance(value, str) or not value:
            continue
        if key in EMAIL_KEYS:
            event_dict[key] = mask_email(value)
        elif key in PHONE_KEYS:
            event_dict[key] = mask_phone(value)
    return event_dict


def _service_fields(settings):
    def add_service_fields(_, __, event_dict: dict) -> dict:
        event_dict.setdefault("service", settings.APP_NAME)
        event_dict.setdefault("env", settings.ENVIRONMENT)
        return event_dict

    return add_service_fields


def build_processors(production: bool, settings=None) -> List[Any]:
    settings = settings or get_settings()
    processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        mask_pii,
    ]
    if production:
        processors += [_service_fields(settings), structlog.processors.format_exc_info]
    return processors


def setup_logging() -> None:
    settings = get_settings()
    production = settings.ENVIRONMENT == "production"

    structlog.configure(
        processors=[
            *build_processors(production, settings),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer = structlog.processors.JSONRenderer() if production else structlog.dev.ConsoleRenderer(colors=True)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    ))

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
