"""
Logging utilities.

Module code logs through logging.getLogger(__name__). Security-relevant
events (logins, token rotation, revocations) go through StructuredLogger,
which emits one JSON object per line so they can be filtered downstream.
"""

import logging
import sys
import json

from tasktrack.clock import utcnow

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: str = "INFO") -> None:
    """Install a single stdout handler on the root logger."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Prevent adding handlers multiple times (app factory may run repeatedly in tests)
    if any(getattr(h, "_tasktrack", False) for h in root.handlers):
        return

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    console_handler._tasktrack = True
    root.addHandler(console_handler)


class StructuredLogger:
    """JSON-line logger for audit events."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def _log_structured(self, level: int, event: str, **kwargs):
        """
        Log a structured message.

        Args:
            level: Logging level
            event: Short event name, e.g. "login_succeeded"
            **kwargs: Additional structured data
        """
        if self.logger.isEnabledFor(level):
            log_data = {
                "timestamp": utcnow().isoformat(),
                "level": logging.getLevelName(level),
                "event": event,
                "logger": self.logger.name,
            }
            log_data.update(kwargs)
            self.logger.log(level, json.dumps(log_data, default=str))

    def debug(self, event: str, **kwargs):
        self._log_structured(logging.DEBUG, event, **kwargs)

    def info(self, event: str, **kwargs):
        self._log_structured(logging.INFO, event, **kwargs)

    def warning(self, event: str, **kwargs):
        self._log_structured(logging.WARNING, event, **kwargs)

    def error(self, event: str, **kwargs):
        self._log_structured(logging.ERROR, event, **kwargs)


def get_audit_logger(name: str) -> StructuredLogger:
    """
    Get an audit logger.

    Args:
        name: Logger name, conventionally "<module>.audit"

    Returns:
        StructuredLogger instance
    """
    return StructuredLogger(name)
