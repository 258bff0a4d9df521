"""Logging setup for the identity subsystem.

Core modules log through stdlib logging with structured `extra` fields;
services log through structlog. Both end up on the same root handler at
settings.log_level.
"""

import logging

import structlog

from app.core.config import settings


def configure_logging(level: str | None = None) -> None:
    """Configure stdlib logging and route structlog through it.

    Args:
        level: Level name (e.g., "DEBUG"). Defaults to settings.log_level.
    """
    log_level = logging.getLevelName((level or settings.log_level).upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    # basicConfig is a no-op once handlers exist
    logging.getLogger().setLevel(log_level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.KeyValueRenderer(
                key_order=["event", "level", "logger"]
            ),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
