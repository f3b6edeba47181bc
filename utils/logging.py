"""
Structured logging for the Riddle client.

    StructuredFormatter  one JSON object per line, job metrics attached
    get_logger           logger with a single structured stderr handler
    JobEventEmitter      one INFO record per job lifecycle event
"""
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

PACKAGE_LOGGER_NAME = "riddle_client"
EVENT_LOGGER_NAME = f"{PACKAGE_LOGGER_NAME}.jobs"


class StructuredFormatter(logging.Formatter):
    """Serialise each record as a single JSON line.

    Keys: ``timestamp``, ``level``, ``logger``, ``message``; plus ``job_id``
    and ``metrics`` when the record carries ``extra={"metrics": {...}}``,
    and ``exception`` when logged with ``exc_info``.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        metrics = getattr(record, "metrics", None)
        if isinstance(metrics, dict):
            if metrics.get("job_id") is not None:
                entry["job_id"] = metrics["job_id"]
            entry["metrics"] = metrics
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def get_logger(name: str, level: str = "INFO") -> logging.Logger:
    """Logger ``name`` at ``level`` with one ``StructuredFormatter`` handler.

    Repeated calls reuse the existing handler.
    """
    logger = logging.getLogger(name)
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(numeric_level)
    if not any(isinstance(h.formatter, StructuredFormatter) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
    return logger


class JobEventEmitter:
    """Emit a structured record for each step of a job's lifecycle.

    Usage::

        events = JobEventEmitter()
        events.emit("submitted", job_id="job_1", mode="url", http_status=408)
        events.emit("run_finished", job_id="job_1", status="completed", ok=True)
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger(EVENT_LOGGER_NAME)

    def emit(self, event: str, **fields: Any) -> Dict[str, Any]:
        """Log ``event`` at INFO with ``fields`` attached as metrics."""
        metrics = {k: v for k, v in fields.items() if v is not None}
        self.logger.info(event, extra={"metrics": metrics})
        return metrics
