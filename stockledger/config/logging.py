"""
Structured logging for the stock ledger.

Every ledger event is a snake_case event name plus key/value context
(``stock_upserted``, ``movement_approved``, ``transfer_approve_interrupted``).
Console output in development, JSON lines elsewhere; ``LOG_FORMAT`` overrides.
"""

import logging
import sys
from enum import Enum
from typing import Any

import structlog
from structlog.types import Processor

from stockledger.config.settings import get_settings

# Field names whose values never reach the log output
SECRET_KEYS = frozenset({"api_key", "airtable_api_key", "authorization", "token"})

# Loggers that would otherwise repeat what the ledger already logs
QUIET_LOGGERS = (
    "httpx",  # Airtable round trips, logged as store_* events
    "httpcore",
    "uvicorn.access",  # requests, logged by LoggingMiddleware
)


def add_app_context(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Stamp app, version, environment and the active record store backend."""
    settings = get_settings()
    event_dict.setdefault("app", settings.app_name)
    event_dict.setdefault("version", settings.app_version)
    event_dict.setdefault("environment", settings.environment)
    event_dict.setdefault("store_backend", settings.store.backend)
    return event_dict


def enum_values(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Render enum members (statuses, movement types, outcomes) as their values."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
    return event_dict


def redact_secrets(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    for key in SECRET_KEYS & event_dict.keys():
        event_dict[key] = "***"
    return event_dict


def _use_json(log_format: str, environment: str) -> bool:
    if log_format == "auto":
        return environment != "development"
    return log_format == "json"


def configure_logging() -> None:
    """Configure structlog and the stdlib root logger from settings."""
    settings = get_settings()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        add_app_context,
        enum_values,
        redact_secrets,
    ]

    if _use_json(settings.log_format, settings.environment):
        renderer: list[Processor] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderer = [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]

    structlog.configure(
        processors=shared_processors + renderer,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level),
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
