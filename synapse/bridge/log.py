"""Loguru setup for the bridge.

Server modes split output by severity: progress goes to stdout and
warnings and errors go to stderr.  ``synapse pipe`` sends everything to
stderr so stdout stays clean in a shell pipeline.  Stdlib records from
uvicorn, redis and friends are routed into the same sinks.
"""

from __future__ import annotations

import logging
import sys

from loguru import logger

LOG_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <7}</level> | "
    "<magenta>{extra[source]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

QUIET_LOGGERS = ("uvicorn.access", "uvicorn.error", "websockets", "redis", "httpx", "httpcore")


class _InterceptHandler(logging.Handler):
    """Forward stdlib records to loguru at the caller's frame."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = "INFO", *, source: str = "session") -> None:
    """Install the bridge sinks.  Safe to call again; existing sinks are replaced."""
    level = level.upper()
    warning_no = logger.level("WARNING").no

    logger.remove()
    logger.configure(extra={"source": source})
    if source == "pipe":
        logger.add(sys.stderr, level=level, format=LOG_FORMAT)
    else:
        logger.add(
            sys.stdout,
            level=level,
            format=LOG_FORMAT,
            filter=lambda record: record["level"].no < warning_no,
        )
        logger.add(sys.stderr, level=max(logger.level(level).no, warning_no), format=LOG_FORMAT)

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.debug("Logging ready (level={}, source={})", level, source)
