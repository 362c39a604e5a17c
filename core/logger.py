import logging
import sys

import structlog

from core.config import settings


def setup_logging():
    """Configure stdlib logging and structlog for the whole process."""
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    if settings.DEBUG:
        level = logging.DEBUG

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    if settings.ENV == "production":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger()
