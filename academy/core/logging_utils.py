import json
import logging
import time
from collections import Counter, deque
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

# Attributes of a bare LogRecord; the rest came in through extra=
_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

# Libraries that are chatty at INFO
_QUIET_LOGGERS = ("sqlalchemy.engine", "uvicorn.access", "httpx", "aiosqlite")


class JsonFormatter(logging.Formatter):
    """One JSON object per line, including structured fields from extra="""

    def format(self, record):
        entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS or key.startswith("_") or value is None:
                continue
            try:
                json.dumps(value)
            except (TypeError, ValueError):
                value = str(value)
            entry[key] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging(log_level: str = "INFO", log_format: str = "text"):
    """
    Configure the root logger: JSON lines in production, plain text when
    developing (LOG_FORMAT / LOG_LEVEL in config).
    """
    handler = logging.StreamHandler()
    if log_format.lower() == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )

    root_logger = logging.getLogger()
    root_logger.handlers[:] = [handler]
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info(f"Logging configured: level={log_level}, format={log_format}")


class ErrorTracker:
    """Per-type counts of server-side failures and the most recent ones"""

    def __init__(self, history: int = 100):
        self.counts: Counter = Counter()
        self.recent = deque(maxlen=history)

    def track_error(
        self, error_type: str, error_message: str, context: Dict[str, Any] = None
    ):
        self.counts[error_type] += 1
        self.recent.append(
            {"at": time.time(), "type": error_type, "message": error_message}
        )
        logger.warning(
            f"Error tracked: {error_type}",
            extra={
                "error_type": error_type,
                "error_message": error_message,
                "occurrences": self.counts[error_type],
                "context": context or {},
            },
        )


error_tracker = ErrorTracker()


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_business_event(
    event: str,
    entity_type: str,
    entity_id: Optional[int],
    details: Dict[str, Any] = None,
):
    """
    Log an academy event (student_created, package_renewed, payment_recorded,
    coach_time_in...) with category=business_event so it can be filtered
    out of the request log.
    """
    logger.info(
        f"Business event: {event}",
        extra={
            "event": event,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "details": details or {},
            "category": "business_event",
        },
    )
