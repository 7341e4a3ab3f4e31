"""
JSON log lines tagged with the request's correlation id.

The middleware in main.py sets the id per request; every line logged while
the request runs carries it, along with any lifecycle identifiers passed
through `extra=` (lead, agent, visit, call, event, outcome, error code).
"""
import json
import logging
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

correlation_id_ctx: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

STRUCTURED_FIELDS = ("lead_id", "agent_id", "visit_id", "call_id", "event", "outcome", "error_code")

QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpcore", "httpx")


def get_correlation_id() -> Optional[str]:
    return correlation_id_ctx.get()


def set_correlation_id(cid: str) -> None:
    correlation_id_ctx.set(cid)


def generate_correlation_id() -> str:
    """32 hex characters."""
    return uuid.uuid4().hex


def _iso_utc(created: float) -> str:
    return datetime.fromtimestamp(created, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class StructuredJsonFormatter(logging.Formatter):
    """One JSON object per record, e.g.

    {"timestamp": "2026-03-02T10:00:00.000000Z", "level": "INFO",
     "correlation_id": "9f...", "module": "leadflow.services.lifecycle",
     "message": "Call logged ...", "lead_id": "...", "event": "call_logged"}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": _iso_utc(record.created),
            "level": record.levelname,
            "correlation_id": get_correlation_id(),
            "module": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (field, getattr(record, field))
            for field in STRUCTURED_FIELDS
            if getattr(record, field, None) is not None
        )
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_structured_logging(log_level: str = "INFO") -> None:
    """Route the root logger through a single JSON stream handler."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredJsonFormatter())
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
