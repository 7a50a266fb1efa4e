"""Logging setup for the payroll engine."""

from __future__ import annotations

import logging
import sys

LOGGER_NAME = "hrms_payroll"

_FORMAT = "%(asctime)s level=%(levelname)s logger=%(name)s %(message)s"


def configure_logging(level: str | int = "INFO") -> logging.Logger:
    """Install a single stream handler on the package logger.

    Safe to call more than once; the handler is only added the first time.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level if isinstance(level, int) else level.upper())

    if not any(getattr(h, "_hrms_payroll", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._hrms_payroll = True  # type: ignore[attr-defined]
        logger.addHandler(handler)

    return logger
