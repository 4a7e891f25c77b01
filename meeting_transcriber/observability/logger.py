"""Structured JSON logger.

Outputs one JSON object per record (stderr by default) with severity, timestamp,
logger name and message fields, plus job context passed through `extra`.
"""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import TextIO

EXTRA_FIELDS = (
    "job_id",
    "stage",
    "chunk_index",
    "attempt",
    "duration_seconds",
    "error",
)


class StructuredJsonFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    SEVERITY_MAP: dict[int, str] = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARNING",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as a JSON string.

        Args:
            record: The log record to format.

        Returns:
            JSON string with severity, timestamp, message, and extra fields.
        """
        log_entry: dict[str, object] = {
            "timestamp": datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "severity": self.SEVERITY_MAP.get(record.levelno, "DEFAULT"),
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value

        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = str(record.exc_info[1])

        return json.dumps(log_entry)


def configure_logging(level: int = logging.INFO, stream: TextIO | None = None) -> None:
    """Attach the JSON formatter to the root logger (once)."""
    root = logging.getLogger()
    root.setLevel(level)
    if any(
        isinstance(h.formatter, StructuredJsonFormatter) for h in root.handlers
    ):
        return
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredJsonFormatter())
    root.addHandler(handler)

