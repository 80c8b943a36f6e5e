"""structlog configuration for multidialer entry points.

Events go through the standard :mod:`logging` module to stderr, so they
interleave with (and never corrupt) the banner and help text on stdout.
"""

from __future__ import annotations

import logging
import sys

import structlog

_configured = False


def level_for(verbosity: int) -> int:
    """Map the number of ``-d`` flags to a :mod:`logging` level."""
    if verbosity <= 0:
        return logging.WARNING
    if verbosity == 1:
        return logging.INFO
    return logging.DEBUG


def configure_logging(verbosity: int = 0) -> None:
    """Configure structlog and standard-library logging.

    Safe to call more than once; later calls only change the level.
    """
    global _configured  # noqa: PLW0603
    level = level_for(verbosity)
    if _configured:
        logging.getLogger().setLevel(level)
        return
    _configured = True

    logging.basicConfig(format="%(message)s", level=level, stream=sys.stderr)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
