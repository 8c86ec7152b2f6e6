import logging
import os
import platform
import socket
from pathlib import Path

logger = logging.getLogger(__name__)


class Environment:
    """Provides info about the user and machine running the host."""

    def __init__(self):
        self.home = Path.home()
        self.user = (
            os.environ.get("USER")
            or os.environ.get("LOGNAME")
            or self.home.name
        )
        self.hostname = self._detect_hostname()

    def _detect_hostname(self) -> str:
        try:
            name = socket.gethostname()
        except OSError as e:
            logger.debug(f"Could not determine hostname: {e}")
            name = ""
        return name or platform.node() or "localhost"

    @property
    def email(self) -> str:
        """Fallback contact address when none is configured."""
        return f"{self.user}@{self.hostname}"

    def __repr__(self) -> str:
        return (
            f"Environment(home={self.home}, user={self.user}, "
            f"hostname={self.hostname})"
        )
