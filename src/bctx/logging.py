from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from pathlib import Path

_LOGGING_CONFIGURED = False
_ROOT_LOGGER_NAME = "bctx"


def setup_logging(
    filename: str | Path | None = None,
    level: str | int = "WARNING",
) -> structlog.BoundLogger:
    """Set up structured logging for the bctx package.

    The first call installs the handler and the structlog pipeline. Later calls
    only reconfigure when a log file or a different level is requested, so the
    import-time default never shadows the CLI options.

    Args:
        filename: Optional path to a log file. If None, logs are written to stderr.
        level: Minimum level name (or number) for emitted events.

    Returns:
        A structlog logger instance configured for the bctx package.
    """
    global _LOGGING_CONFIGURED  # noqa: PLW0603
    numeric_level = level if isinstance(level, int) else logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.WARNING

    stdlib_logger = logging.getLogger(_ROOT_LOGGER_NAME)
    if not _LOGGING_CONFIGURED or filename or stdlib_logger.level != numeric_level:
        handler: logging.Handler
        if filename:
            handler = logging.FileHandler(str(filename), encoding="utf-8")
        else:
            handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(message)s"))

        for old in list(stdlib_logger.handlers):
            stdlib_logger.removeHandler(old)
            old.close()
        stdlib_logger.addHandler(handler)
        stdlib_logger.setLevel(numeric_level)
        stdlib_logger.propagate = False

        structlog.configure(
            processors=[
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=False,
        )
        _LOGGING_CONFIGURED = True

    return structlog.get_logger(_ROOT_LOGGER_NAME)


logger = setup_logging()
