"""Tests for structured log output."""

import json
import logging
import sys

from calsync.__main__ import JSONFormatter


def make_record(msg, args=(), exc_info=None):
    return logging.LogRecord(
        name="calsync.sync.engine",
        level=logging.ERROR,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=args,
        exc_info=exc_info,
    )


class TestJSONFormatter:
    """Tests for the JSON lines formatter."""

    def test_format_fields(self):
        """Test that a record becomes one JSON object."""
        line = JSONFormatter().format(make_record("Saved %d events", (3,)))

        data = json.loads(line)
        assert data["level"] == "ERROR"
        assert data["component"] == "calsync.sync.engine"
        assert data["message"] == "Saved 3 events"
        assert "exception" not in data

    def test_format_exception(self):
        """Test that exception info is rendered as a traceback string."""
        try:
            raise OSError("disk full")
        except OSError:
            record = make_record("Failed to save", exc_info=sys.exc_info())

        data = json.loads(JSONFormatter().format(record))

        assert "OSError: disk full" in data["exception"]
