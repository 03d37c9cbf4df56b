"""Verbosity-driven logging for planscope.

Every module logs through a child of the ``planscope`` logger (pass
``__name__`` to get_logger). setup_logger configures only the parent, so one
call controls the scheduler and the resource services together. At debug
verbosity each line is prefixed with the component that wrote it.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

ROOT_LOGGER = "planscope"

# Custom levels between standard logging levels
CHANGES_LEVEL = 25  # Schedule writes, completions, link changes
CHECKS_LEVEL = 15  # Validation and classification decisions

logging.addLevelName(CHANGES_LEVEL, "CHANGES")
logging.addLevelName(CHECKS_LEVEL, "CHECKS")

VERBOSITY_SILENT = 0
VERBOSITY_CHANGES = 1
VERBOSITY_CHECKS = 2
VERBOSITY_DEBUG = 3

LEVELS = (logging.ERROR, CHANGES_LEVEL, CHECKS_LEVEL, logging.DEBUG)  # Indexed by verbosity

PLAIN_FORMAT = "%(message)s"
DEBUG_FORMAT = "[%(name)s] %(message)s"


class PlanscopeLogger(logging.Logger):
    """Logger with one method per verbosity step above errors."""

    def changes(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log something the engine wrote or recomputed (verbosity 1)."""
        if self.isEnabledFor(CHANGES_LEVEL):
            self._log(CHANGES_LEVEL, msg, args, **kwargs)

    def checks(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log a validation or classification decision (verbosity 2)."""
        if self.isEnabledFor(CHECKS_LEVEL):
            self._log(CHECKS_LEVEL, msg, args, **kwargs)


def get_logger(name: str = ROOT_LOGGER) -> PlanscopeLogger:
    """Return the planscope logger, or the child logger for a module name.

    Names outside the planscope hierarchy are nested under it so that every
    logger follows the configured verbosity.
    """
    if name != ROOT_LOGGER and not name.startswith(f"{ROOT_LOGGER}."):
        name = f"{ROOT_LOGGER}.{name}"
    logging.setLoggerClass(PlanscopeLogger)
    logger = logging.getLogger(name)
    assert isinstance(logger, PlanscopeLogger)
    return logger


def level_for(verbosity: int) -> int:
    """Logging level for a verbosity count; out-of-range counts are clamped."""
    return LEVELS[min(max(verbosity, VERBOSITY_SILENT), VERBOSITY_DEBUG)]


def setup_logger(verbosity: int, stream: TextIO | None = None) -> None:
    """Route planscope logging to ``stream`` (stderr by default) at a verbosity.

    Replaces any handler installed by an earlier call.
    """
    level = level_for(verbosity)
    logger = get_logger()
    logger.handlers.clear()
    logger.setLevel(level)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    fmt = DEBUG_FORMAT if level <= logging.DEBUG else PLAIN_FORMAT
    handler.setFormatter(logging.Formatter(fmt))
    logger.addHandler(handler)
    logger.propagate = False


def reset_logger() -> None:
    """Drop handlers and return to errors-only, propagating to the root logger."""
    logger = get_logger()
    logger.handlers.clear()
    logger.setLevel(logging.ERROR)
    logger.propagate = True


def changes_enabled() -> bool:
    return get_logger().isEnabledFor(CHANGES_LEVEL)


def checks_enabled() -> bool:
    return get_logger().isEnabledFor(CHECKS_LEVEL)


def debug_enabled() -> bool:
    return get_logger().isEnabledFor(logging.DEBUG)
