"""
JSON log output for the courier flusher.

Delivery events are emitted by ``courier.src.transport`` through plain
``logging``; this module only decides how they look when the flusher
runs as a process. Each record becomes one JSON line on stderr, since
stdin carries the records being delivered and stdout is left to the
caller.

Line fields: ``timestamp``, ``level``, ``logger``, ``thread`` and
``message``. A delivery that ran out of retries on an exception is
logged with ``exc_info``, so its line also carries an ``exception``
field with the traceback, kept on the same line.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-008)
- 2026-10-18: Thread name field for the stdin reader thread (STORY-010)

TODO:
- None
"""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import TextIO


class JSONFormatter(logging.Formatter):
    """Render a record as one JSON object per line.

    ``thread`` tells the stdin reader apart from the thread that sends
    batches. ``exception`` is present only when the record has
    ``exc_info``.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(
    level: int | str = logging.INFO,
    stream: TextIO | None = None,
) -> None:
    """Send all logging to *stream* (stderr by default) as JSON lines.

    Replaces any handlers already on the root logger, so calling it
    twice does not duplicate output.

    Args:
        level: Root level, numeric or a name such as ``"DEBUG"``
            (``TransportSettings.log_level`` is passed straight in).
        stream: Destination for log lines.
    """
    root = logging.getLogger()
    root.setLevel(level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)
