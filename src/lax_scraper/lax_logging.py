"""Structured logging setup for the lacrosse scraper."""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

import structlog
from structlog.stdlib import LoggerFactory

from .config import AppSettings, LogFormat, get_settings

# Identifies every log line emitted by one extraction run
run_id_var: ContextVar[Optional[str]] = ContextVar("run_id", default=None)


def get_run_id() -> str:
    """Get or generate the run ID for the current context."""
    run_id = run_id_var.get()
    if run_id is None:
        run_id = str(uuid.uuid4())[:8]
        run_id_var.set(run_id)
    return run_id


def add_run_id(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add run ID to log events."""
    event_dict["run_id"] = get_run_id()
    return event_dict


def configure_logging(settings: Optional[AppSettings] = None) -> None:
    """Configure structured logging for CLI runs.

    Production always renders JSON; elsewhere ``LOG_FORMAT`` decides.
    """
    settings = settings or get_settings()

    processors = [
        structlog.contextvars.merge_contextvars,
        add_run_id,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.LOG_FORMAT == LogFormat.JSON or settings.is_prod():
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.LOG_LEVEL),
    )

    # Silence noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
