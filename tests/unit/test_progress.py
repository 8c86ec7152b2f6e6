"""Tests for progress sinks."""

import logging

import pytest

from settingsrepo.errors import CancelledError
from settingsrepo.progress import (
    LoggingProgressSink,
    NullProgressSink,
    check_cancelled,
)


class TestProgressSinks:
    def test_null_sink_never_cancels(self):
        """The null sink ignores messages."""
        sink = NullProgressSink()
        sink.report("anything")

        assert not sink.is_cancelled()
        check_cancelled(sink)

    def test_logging_sink(self, caplog):
        """Messages are logged at INFO."""
        sink = LoggingProgressSink(logging.getLogger("test.progress"))

        with caplog.at_level(logging.INFO, logger="test.progress"):
            sink.report("Pushing to origin")

        assert "Pushing to origin" in caplog.text

    def test_cancel(self):
        """A cancelled sink stops the next checkpoint."""
        sink = LoggingProgressSink()
        sink.cancel()

        with pytest.raises(CancelledError):
            check_cancelled(sink)
