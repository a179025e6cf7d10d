"""Tagged logging for the polygraph package.

Every record names the subsystem that produced it (``Session``,
``Capture``, ``Tones``, ``GUI``) and may carry ``key=value`` fields::

    [WARNING][Capture] Microphone unavailable | status=busy

The operator picks the verbosity from the settings dialog; the kiosk
applies it with :func:`set_log_level`.
"""

from __future__ import annotations

import logging
from typing import Any

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
DEFAULT_LOG_LEVEL = "INFO"

logger = logging.getLogger("polygraph")


def _install_handler() -> None:
    if logger.handlers:
        return
    stream = logging.StreamHandler()
    stream.setFormatter(logging.Formatter("[%(levelname)s][%(tag)s] %(message)s"))
    logger.addHandler(stream)
    logger.setLevel(DEFAULT_LOG_LEVEL)


_install_handler()


def _level_number(name: str) -> int:
    name = (name or "").upper()
    if name not in LOG_LEVELS:
        name = DEFAULT_LOG_LEVEL
    return logging.getLevelName(name)


def log_event(level: str, tag: str, message: str, **fields: Any) -> None:
    """Log ``message`` under ``tag``, appending ``key=value`` fields."""
    if fields:
        message += " | " + " ".join(f"{key}={value}" for key, value in fields.items())
    logger.log(_level_number(level), message, extra={"tag": tag})


def set_log_level(level: str) -> str:
    """Change the package verbosity and return the level name applied.

    Unknown names fall back to ``INFO``.
    """
    number = _level_number(level)
    logger.setLevel(number)
    return logging.getLevelName(number)


__all__ = ["LOG_LEVELS", "DEFAULT_LOG_LEVEL", "log_event", "set_log_level"]
