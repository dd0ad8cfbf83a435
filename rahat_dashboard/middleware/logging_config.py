"""
Structured JSON logging.

One JSON object per line: timestamp, level, logger, message, request_id,
plus duration_ms / status_code / actor / case_id when the record carries
them. Backend session tokens never reach the output.
"""

import json
import logging
import re
from datetime import datetime, timezone

from rahat_dashboard.config import settings
from rahat_dashboard.middleware.request_context import get_request_id

_EXTRA_FIELDS = ("duration_ms", "status_code", "actor", "case_id")
_TOKEN = re.compile(rf"({re.escape(settings.session_cookie_name)}=)[^;\s\"']+")


def redact(text: str) -> str:
    return _TOKEN.sub(r"\1***", text)


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": redact(record.getMessage()),
            "request_id": get_request_id() or None,
        }
        for name in _EXTRA_FIELDS:
            if hasattr(record, name):
                entry[name] = getattr(record, name)
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = redact(self.formatException(record.exc_info))
        return json.dumps(entry, default=str)


def configure_json_logging(log_level: str = "INFO") -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    # httpx logs every request at INFO; ours already do
    logging.getLogger("httpx").setLevel(logging.WARNING)
