"""
Event sinks receiving per-group refresh notifications.
"""

import logging
from typing import Protocol

NORMAL = "Normal"
WARNING = "Warning"

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    def event(self, severity: str, reason: str, message: str) -> None:
        ...


class LoggingEventSink:
    """Writes events to the log, warnings at WARNING level and the rest at INFO."""

    def __init__(self, log: logging.Logger = logger):
        self.log = log

    def event(self, severity: str, reason: str, message: str) -> None:
        level = logging.WARNING if severity == WARNING else logging.INFO
        self.log.log(level, "%s: %s", reason, message)
