import json
import logging
from datetime import datetime, timezone

from loopgen.config import settings

_EXTRA_KEYS = (
    "attempt",
    "attempts",
    "accepted",
    "reason",
    "status",
    "distance_km",
    "route_id",
    "path",
    "method",
    "status_code",
)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


def configure_logging(level: str | None = None) -> None:
    name = (level or settings.log_level).upper()
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, name, logging.INFO))

    # Replace default handlers with structured JSON output.
    root_logger.handlers = []
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)
