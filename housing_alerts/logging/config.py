"""Root logger setup: one stdout handler, JSON or key=value lines."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Literal

from .context import get_log_context

LogFormat = Literal["json", "key-value"]

SERVICE_NAME = "housing-alerts"

# Attributes every LogRecord carries; anything else came from extra or context.
_RECORD_ATTRS = frozenset(
    {
        "name", "msg", "args", "created", "filename", "funcName", "levelname",
        "levelno", "lineno", "module", "msecs", "message", "pathname", "process",
        "processName", "relativeCreated", "thread", "threadName", "asctime",
        "exc_info", "exc_text", "stack_info", "taskName",
    }
)


def _extra_fields(record: logging.LogRecord, skip=frozenset()) -> Dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRS and key not in skip and not key.startswith("_")
    }


class ContextualFilter(logging.Filter):
    """Stamps ``service``/``environment`` and the active log context onto records.

    Explicit ``extra`` values win over context values with the same name.
    """

    def __init__(self, service: str = SERVICE_NAME, environment: str = "local"):
        super().__init__()
        self.service = service
        self.environment = environment

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = self.service
        record.environment = self.environment
        for key, value in get_log_context().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line with ``timestamp``, ``level``, ``message`` and extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": self._format_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in _extra_fields(record).items():
            if isinstance(value, datetime):
                payload[key] = value.isoformat()
            elif isinstance(value, (str, int, float, bool, list, dict, type(None))):
                payload[key] = value
            else:
                payload[key] = str(value)

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)

    @staticmethod
    def _format_timestamp(created: float) -> str:
        moment = datetime.fromtimestamp(created, tz=timezone.utc)
        return moment.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


class KeyValueFormatter(logging.Formatter):
    """Human-readable ``<time> [LEVEL] logger: message key=value ...`` lines."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = _extra_fields(record, skip={"service", "environment"})
        if not extras:
            return line
        pairs = " ".join(f"{key}={self._render(value)}" for key, value in sorted(extras.items()))
        return f"{line} {pairs}"

    @staticmethod
    def _render(value: Any) -> str:
        if value is None:
            return "null"
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, datetime):
            return value.isoformat()
        text = str(value)
        if any(char in text for char in ' =,"'):
            return json.dumps(text)
        return text


def configure_logging(
    level: str = "INFO",
    format_type: LogFormat = "key-value",
    environment: str = "local",
) -> None:
    """
    Install the stdout handler on the root logger, replacing existing handlers.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        format_type: 'json' or 'key-value'
        environment: Environment label stamped on each record

    Raises:
        ValueError: If level or format_type is invalid
    """
    numeric_level = getattr(logging, str(level).upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")
    if format_type not in ("json", "key-value"):
        raise ValueError(f"Invalid log format: {format_type}. Must be 'json' or 'key-value'")

    handler = logging.StreamHandler(sys.stdout)
    if format_type == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            KeyValueFormatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    handler.addFilter(ContextualFilter(environment=environment))

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # APScheduler logs every job execution at INFO.
    logging.getLogger("apscheduler").setLevel(max(numeric_level, logging.WARNING))

    logging.getLogger(__name__).info(
        "Logging configured",
        extra={
            "event": "logging.configured",
            "component": "logging",
            "log_level": str(level).upper(),
            "log_format": format_type,
        },
    )
