"""
Structured logging configuration.
Provides JSON or console rendering with logger name, level, ISO timestamps and
tenant context on every record.
"""
import logging
import sys
import os
from typing import Optional

import structlog
from structlog.stdlib import LoggerFactory


def configure_logging(
    level: Optional[str] = "INFO",
    format_type: Optional[str] = "auto",  # "auto", "console" or "json"
    log_file: Optional[str] = None,
):
    """
    Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: 'json', 'console' or 'auto' (JSON in production)
        log_file: Optional file to mirror console output to
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    level = level.upper()

    if format_type in (None, "auto"):
        environment = os.getenv("ENVIRONMENT", "development").lower()
        format_type = "json" if environment == "production" else "console"

    shared_processors = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        add_tenant_context,
    ]

    if format_type == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level))

    _configure_third_party_loggers()

    structlog.get_logger(__name__).info(
        "Structured logging initialized",
        log_level=level,
        format_type=format_type,
    )


def _configure_third_party_loggers():
    """Quieten verbose third-party loggers."""
    third_party_loggers = {
        "uvicorn": "INFO",
        "uvicorn.access": "INFO",
        "sqlalchemy.engine": "WARNING",
        "sqlalchemy.pool": "WARNING",
        "httpx": "WARNING",
        "celery": "INFO",
    }

    for logger_name, logger_level in third_party_loggers.items():
        logging.getLogger(logger_name).setLevel(getattr(logging, logger_level))


def add_tenant_context(logger, method_name, event_dict):
    """Processor to add tenant context to log records."""
    from app.deps.tenant import tenant_ctx_var

    tenant_id = tenant_ctx_var.get(None)
    if tenant_id and "tenant_id" not in event_dict:
        event_dict["tenant_id"] = tenant_id

    return event_dict
