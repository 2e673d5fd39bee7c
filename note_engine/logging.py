"""Structured logging configuration for note-engine.

Engine and store log calls pass the ids they act on through ``extra``
(``note_id``, ``installment_id``, ``customer_id``). The standard format
appends them as a ``[note_id=... installment_id=...]`` suffix; the JSON
format emits them as top-level keys, so a note's history can be filtered
out of the log stream.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

CONTEXT_FIELDS = ("note_id", "installment_id", "customer_id")


def setup_logging(
    level: str = "INFO",
    format_type: str = "standard",
) -> None:
    """Configure logging for note-engine.

    Parameters
    ----------
    level : str
        Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    format_type : str
        Format type: "standard" or "json".
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if format_type == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s%(context)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.addFilter(NoteContextFilter())
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    logging.getLogger("note_engine").setLevel(log_level)

    # Reduce noise from external libraries
    logging.getLogger("psycopg").setLevel(logging.WARNING)
    logging.getLogger("faker").setLevel(logging.WARNING)


def note_context(
    note_id: str | None = None,
    installment_id: str | None = None,
    customer_id: str | None = None,
) -> dict[str, str]:
    """Build the ``extra`` mapping for a log call, skipping unset ids."""
    values = {"note_id": note_id, "installment_id": installment_id, "customer_id": customer_id}
    return {key: value for key, value in values.items() if value}


def record_context(record: logging.LogRecord) -> dict[str, Any]:
    """Ids attached to a record through ``extra``."""
    return {key: getattr(record, key) for key in CONTEXT_FIELDS if getattr(record, key, None)}


class NoteContextFilter(logging.Filter):
    """Render a record's note and installment ids into ``record.context``."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = record_context(record)
        record.context = " [" + " ".join(f"{k}={v}" for k, v in context.items()) + "]" if context else ""
        return True


class JsonFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_data.update(record_context(record))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Free-form fields passed via ``extra={"extra": {...}}``
        if hasattr(record, "extra"):
            log_data.update(record.extra)

        return json.dumps(log_data, default=str)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name.

    Parameters
    ----------
    name : str
        Logger name (usually __name__).

    Returns
    -------
    logging.Logger
        Configured logger.
    """
    return logging.getLogger(name)
