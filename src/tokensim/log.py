"""
Logging setup for tokensim.

Every module logs through ``logging.getLogger(__name__)``, so all engine
output lives under the ``tokensim`` logger. Nothing is printed until
``configure_logging`` attaches a handler.
"""

from __future__ import annotations
import logging
import sys
from typing import TextIO

from tokensim.core.events import Event, EventKind

LOGGER_NAME = "tokensim"

_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
_DATE_FORMAT = "%H:%M:%S"


def configure_logging(level: int | str = logging.INFO, stream: TextIO | None = None) -> logging.Logger:
    """
    Attach a single console handler to the ``tokensim`` logger.

    Calling it again replaces the previous handler instead of stacking a
    second one.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT))
    logger.addHandler(handler)

    # Keep engine output out of the root logger
    logger.propagate = False
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Logger under the ``tokensim`` namespace."""
    if not name:
        return logging.getLogger(LOGGER_NAME)
    if name == LOGGER_NAME or name.startswith(LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


class LoggingObserver:
    """
    Event observer that writes lifecycle events as log lines.

    Subscribe it to a simulation's event bus:
        sim.events.subscribe(LoggingObserver())
    """

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.INFO):
        self.logger = logger or get_logger("events")
        self.level = level

    def __call__(self, event: Event) -> None:
        level = logging.WARNING if event.kind is EventKind.WARNING else self.level
        details = " ".join(f"{key}={value}" for key, value in event.payload.items())
        self.logger.log(level, "[%s] %s", event.kind.value, details)
