"""Progress reporting surface shared with the host application."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from .errors import CancelledError


class ProgressSink(ABC):
    """Receives progress messages and exposes the host's cancel flag."""

    @abstractmethod
    def report(self, message: str) -> None:
        """Report a human-readable progress message."""
        pass

    def is_cancelled(self) -> bool:
        return False


class NullProgressSink(ProgressSink):
    def report(self, message: str) -> None:
        pass


class LoggingProgressSink(ProgressSink):
    """Forwards progress messages to a logger at INFO level."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.cancelled = False

    def report(self, message: str) -> None:
        self.logger.info(message)

    def cancel(self) -> None:
        self.cancelled = True

    def is_cancelled(self) -> bool:
        return self.cancelled


def check_cancelled(sink: ProgressSink) -> None:
    """Raise CancelledError if the host asked to stop."""
    if sink.is_cancelled():
        raise CancelledError("Operation cancelled")
