"""Structured logging configuration for GoalPulse."""
import logging
import json
import sys
from datetime import datetime, timezone

# Request and report context copied onto the JSON line when a log call sets it
_EXTRA_FIELDS = (
    "request_id",
    "http_method",
    "http_path",
    "http_status",
    "duration_ms",
    "report",
    "organization_id",
    "user_id",
)


class JSONFormatter(logging.Formatter):
    """One JSON object per line; request/report context fields only when set."""
    def format(self, record):
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        for name in _EXTRA_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_entry[name] = value
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


class ContextTextFormatter(logging.Formatter):
    """Plain-text lines for local runs, suffixed with org/user when known."""
    def format(self, record):
        line = super().format(record)
        context = " ".join(
            f"{name}={getattr(record, name)}"
            for name in ("organization_id", "user_id", "report")
            if getattr(record, name, None) is not None
        )
        return f"{line} [{context}]" if context else line


def setup_logging(level: str = "INFO", json_output: bool = True):
    """Configure the root logger from LOG_LEVEL / LOG_FORMAT settings."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(ContextTextFormatter(
            "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
        ))

    root.handlers = [handler]

    for name in ["uvicorn.access", "httpcore", "httpx", "sqlalchemy.engine"]:
        logging.getLogger(name).setLevel(logging.WARNING)
