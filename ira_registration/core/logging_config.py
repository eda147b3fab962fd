"""
Logging configuration for the registration core.

- Structured JSON logging in production, console rendering elsewhere
- Wizard context (step, flow) bound through structlog contextvars
- Environment-aware log levels
"""

import logging
from typing import Optional

import structlog

from ira_registration.core.config import settings

# Keys that must never reach a log line, even when passed as context.
REDACTED_KEYS = frozenset(
    {"password", "confirm_password", "ssn", "account_number", "routing_number", "token"}
)


def redact_sensitive(_logger, _method_name, event_dict):
    """structlog processor: mask sensitive values passed as log context."""
    for key in REDACTED_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def configure_structlog(environment: Optional[str] = None) -> None:
    """
    Configure structlog using the stdlib integration pattern so
    logger.info("event", key=val) works everywhere.
    """
    env = environment or settings.environment

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        redact_sensitive,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if env == "production":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]


def get_log_level(environment: Optional[str] = None) -> str:
    """
    Get log level from settings with per-environment defaults.

    Returns:
        Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    env = environment or settings.environment
    log_level = (settings.log_level or "").upper()

    if log_level in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        return log_level

    defaults = {
        "production": "INFO",
        "staging": "INFO",
        "development": "DEBUG",
        "test": "WARNING",
    }

    return defaults.get(env, "INFO")


def configure_logging(environment: Optional[str] = None) -> None:
    """
    Initialize logging for the application.

    Call once at startup, before the first wizard is built.
    """
    configure_structlog(environment)

    logging.getLogger().setLevel(get_log_level(environment))

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
