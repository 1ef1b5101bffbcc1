"""
structlog setup shared by the API server and the CLI.

Library modules log through ``logging.getLogger(__name__)``; routing
structlog through the stdlib factory means both end up in one stream
with the same renderer. Production renders JSON lines, everything else
a colored console format.
"""

import logging
import sys

import structlog
from structlog.types import Processor

from adoption_tracker.config.settings import get_settings

# Chatty at INFO and not useful while a refresh is paging through search
_QUIET_LOGGERS = ("httpx", "httpcore", "asyncio", "schedule")


def _renderer(production: bool) -> list[Processor]:
    if production:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=True)]


def setup_logging() -> None:
    """
    Configure structlog and the root logger from settings.

    Usage:
        setup_logging()
        logger = structlog.get_logger(__name__)
        logger.info("Refresh started", job_id=42, trigger="manual")
    """
    settings = get_settings()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        *_renderer(settings.is_production),
    ]

    structlog.configure(
        processors=processors,
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
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_context(**kwargs) -> None:
    """Attach fields (e.g. ``request_id``) to every log line until cleared."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
