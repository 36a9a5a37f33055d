"""Logging setup for applications embedding keg.

Library modules only ever do::

    import logging
    log = logging.getLogger(__name__)

and the package logger carries a NullHandler, so nothing is printed
unless the host application configures logging. ``configure_logging``
is that hook for hosts without their own setup. Levels used:
    - DEBUG: degraded parses, skipped index lines, lock waits
    - INFO: index writes and rebuilds
    - WARNING: per-node failures that were collected and reported
    - ERROR: failures that prevented an operation
"""

import logging
import sys
from typing import TextIO

from .config import get_log_level

PACKAGE_LOGGER = "keg"

# Identifies the stream handler installed by configure_logging
_HANDLER_NAME = "keg-stream"

_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


def install_null_handler() -> None:
    """Attach a NullHandler to the package logger once."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    if not any(isinstance(h, logging.NullHandler) for h in logger.handlers):
        logger.addHandler(logging.NullHandler())


def configure_logging(level: str | int | None = None, stream: TextIO | None = None) -> logging.Logger:
    """Send keg log records to a stream (stderr by default).

    Safe to call repeatedly: the existing keg handler is reused and only
    its level changes, so records are never duplicated.

    Args:
        level: Level name or number; defaults to KEG_LOG_LEVEL, then INFO.
        stream: Destination for records.

    Returns:
        The package logger.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    resolved = get_log_level(level)

    handler = next((h for h in logger.handlers if h.get_name() == _HANDLER_NAME), None)
    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
    elif stream is not None and isinstance(handler, logging.StreamHandler):
        handler.setStream(stream)

    handler.setLevel(resolved)
    logger.setLevel(resolved)
    # The host's root handlers would print every record a second time
    logger.propagate = False
    return logger
