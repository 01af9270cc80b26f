"""Root logger setup shared by the issuer service and the client.

Plain lines by default; JSON Lines when LOG_JSON=true.  Structured context
(request ids, lesson ids, mint outcomes) is passed with ``extra=`` and only
surfaces as keys in the JSON shape; the plain shape stays one short line.
"""

from __future__ import annotations

import json
import logging
import sys
import time

_TIME_FMT = "%Y-%m-%dT%H:%M:%S"

# extra= keys promoted to top-level JSON fields, in output order.
CONTEXT_FIELDS = (
    "request_id",
    "method",
    "path",
    "status_code",
    "duration_ms",
    "lesson_id",
    "recipient",
    "outcome",
    "mint_count",
)

_NOISY_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error", "httpcore", "httpx")


def _iso_millis(record: logging.LogRecord, converter=time.localtime) -> str:
    """``2024-01-31T12:00:00.123+0000``: local time with millis and offset."""
    ct = converter(record.created)
    return (
        f"{time.strftime(_TIME_FMT, ct)}.{int(record.msecs):03d}"
        f"{time.strftime('%z', ct)}"
    )


class _ContainerFormatter(logging.Formatter):
    """One line per record; WARNING and above carry ``[file:line]``."""

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        return _iso_millis(record, self.converter)

    def format(self, record: logging.LogRecord) -> str:
        line = (
            f"{self.formatTime(record)} {record.levelname:<8} "
            f"{record.name}  {record.getMessage()}"
        )
        if record.levelno >= logging.WARNING:
            line += f"  [{record.filename}:{record.lineno}]"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": _iso_millis(record, self.converter),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (field, getattr(record, field))
            for field in CONTEXT_FIELDS
            if getattr(record, field, None) is not None
        )
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level_name: str, *, json_format: bool = False) -> logging.Handler:
    """Send all records to stdout through a single handler.

    Unknown level names fall back to INFO.  HTTP server and client
    libraries are held at WARNING or above.  Returns the installed handler.
    """
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
    root.addHandler(handler)
    root.setLevel(level)

    quiet = max(level, logging.WARNING)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet)
    return handler
