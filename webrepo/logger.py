"""Loguru based logging for webrepo.

Library modules log through ``logging.getLogger(__name__)``. Applications
call ``configure_logging()`` once to route those records into loguru.
"""

import logging
import sys
from inspect import currentframe

import typing as t
from loguru import logger

from .config import RepositorySettings
from .depends import depends

LOG_FORMAT = (
    "<b><e>[</e> <w>{time:YYYY-MM-DD HH:mm:ss.SSS}</w> <e>]</e></b>"
    " <level>{level:>8}</level>"
    " <b><w>in</w></b> <b>{name:>20}</b>"
    "<b><e>[</e><w>{line:^5}</w><e>]</e></b>"
    "  <level>{message}</level>"
)


class InterceptHandler(logging.Handler):
    """Handler to intercept standard library logging and route to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        """Emit log record via Loguru."""
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = (currentframe(), 0)
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level,
            record.getMessage(),
        )


def configure_logging(
    level: str | None = None,
    sink: t.Any = sys.stderr,
) -> int:
    """Install a single loguru sink and intercept the ``webrepo`` loggers.

    Args:
        level: Minimum level, defaults to ``RepositorySettings.log_level``
        sink: Any loguru sink

    Returns:
        The loguru handler id
    """
    if level is None:
        level = depends.get_sync(RepositorySettings).log_level

    logger.remove()
    handler_id = logger.add(sink, level=level.upper(), format=LOG_FORMAT)

    library_logger = logging.getLogger("webrepo")
    library_logger.handlers = [InterceptHandler()]
    library_logger.setLevel(logging.DEBUG)
    library_logger.propagate = False
    return handler_id


__all__ = ["InterceptHandler", "configure_logging", "logger"]
