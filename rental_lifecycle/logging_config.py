# rental_lifecycle/logging_config.py
from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from .middleware.request_id import get_request_id

# structured extras copied onto the JSON line when a call site passes them
_EXTRA_KEYS = (
    "actor_id",
    "owner_id",
    "user_id",
    "entity_type",
    "entity_id",
    "from_status",
    "to_status",
    "action",
    "event",
    "count",
    "months",
    "total",
    "reason",
    "method",
    "path",
    "status_code",
    "latency_ms",
)


class JsonFormatter(logging.Formatter):
    """
    One JSON object per record: ts, level, logger, message, request_id (when
    inside a request), exc_info, plus any of the known lifecycle extras.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        rid = get_request_id()
        if rid:
            payload["request_id"] = rid

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        for k in _EXTRA_KEYS:
            if hasattr(record, k):
                payload[k] = getattr(record, k)

        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging() -> None:
    level = (os.getenv("LOG_LEVEL") or "INFO").upper()

    root = logging.getLogger()
    root.setLevel(level)

    # uvicorn --reload re-imports the app; drop the previous handler
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(level)
    logging.getLogger("sqlalchemy.engine").setLevel((os.getenv("SQL_LOG_LEVEL") or "WARNING").upper())
    logging.getLogger("celery").setLevel((os.getenv("CELERY_LOG_LEVEL") or level).upper())
