"""Logging setup for the command line and for interactive use.

Library modules only create module level loggers under the ``curvewarp``
namespace and never attach handlers themselves.
"""

from __future__ import annotations

import logging
from typing import IO, Optional

DEFAULT_FORMAT = "%(levelname)s:%(name)s:%(message)s"
ROOT_LOGGER = "curvewarp"


def get_logger(
    name: str = ROOT_LOGGER,
    level: int = logging.INFO,
    fmt: str = DEFAULT_FORMAT,
    stream: Optional[IO[str]] = None,
) -> logging.Logger:
    """Return ``name``'s logger with one ``StreamHandler`` attached.

    Repeated calls only update the level, so the handler is never doubled.
    ``stream`` defaults to ``sys.stderr``.
    """

    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(stream)
        handler.setFormatter(logging.Formatter(fmt))
        logger.addHandler(handler)
    logger.setLevel(level)
    return logger


def set_verbosity(verbose: bool) -> logging.Logger:
    """Configure the package logger for DEBUG output when ``verbose``."""

    return get_logger(ROOT_LOGGER, logging.DEBUG if verbose else logging.INFO)


__all__ = ["get_logger", "set_verbosity", "DEFAULT_FORMAT", "ROOT_LOGGER"]
