"""Logging setup for hosts that want engine output on a stream."""

import logging
import sys
from typing import Optional, TextIO, Union

from smollm_lite.core.config import EngineSettings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(
    level: Optional[Union[int, str]] = None,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Attach a stream handler to the ``smollm_lite`` logger.

    Calling it again replaces the handler installed by the previous call
    instead of adding a second one.

    Args:
        level: Logging level name or number. Defaults to ``SMOLLM_LOG_LEVEL``
            (WARNING when unset).
        stream: Destination stream (stderr by default).

    Returns:
        The package logger.
    """
    if level is None:
        level = EngineSettings.from_env().log_level

    logger = logging.getLogger("smollm_lite")
    logger.setLevel(level.upper() if isinstance(level, str) else level)

    for handler in list(logger.handlers):
        if getattr(handler, "_smollm_handler", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._smollm_handler = True
    logger.addHandler(handler)
    return logger
