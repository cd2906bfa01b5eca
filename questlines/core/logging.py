"""Structured logging for questlines.

Console only: ``-v`` raises the level to INFO, ``-vv`` to DEBUG. Events are
snake_case names with key/value context, e.g.
``log.info("questline_saved", questline_id=...)``.
"""

from __future__ import annotations

import logging
import sys

import structlog

_configured = False


def configure_logging(verbosity: int = 0) -> None:
    """Configure stdlib logging + structlog.

    Args:
        verbosity: 0=WARNING (default), 1=INFO, 2+=DEBUG
    """
    global _configured

    levels = {0: logging.WARNING, 1: logging.INFO}
    level = levels.get(verbosity, logging.DEBUG)

    # Bound to the stderr of this call; the CLI configures once per invocation.
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[console_handler],
        force=True,
    )
    for logger_name in ("httpx", "httpcore", "asyncio"):
        logging.getLogger(logger_name).setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=False,
    )

    _configured = True


def get_logger(name: str | None = None) -> structlog.typing.FilteringBoundLogger:
    """Return a bound logger, configuring defaults on first use."""
    if not _configured:
        configure_logging()

    logger: structlog.typing.FilteringBoundLogger = structlog.get_logger(name)
    return logger
