import json
import logging
import sys
import time
from typing import Final

# Every attribute a bare LogRecord carries. Anything else found on a record was
# attached through `extra={...}` (request_id, operation, upstream_status, ...)
# and is emitted as structured context.
RESERVED_RECORD_FIELDS: Final[frozenset[str]] = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """
    Structured log formatter that emits one JSON object per line.

    The output contains the level, logger name, rendered message and an epoch
    millisecond timestamp, the formatted traceback when an exception is
    attached, and every contextual field passed through `extra={...}`.
    Values that are not JSON serializable (ObjectIds, datetimes, upstream
    payloads) are rendered with `str()` rather than dropped.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "level": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
            "time_ms": int(time.time() * 1000),
        }

        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in RESERVED_RECORD_FIELDS:
                entry[key] = value

        return json.dumps(entry, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for local development; appends `extra` fields."""

    def __init__(self) -> None:
        super().__init__("%(levelname)s %(name)s %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = {
            key: value
            for key, value in record.__dict__.items()
            if key not in RESERVED_RECORD_FIELDS
        }

        if context:
            line += " " + " ".join(f"{key}={value}" for key, value in context.items())

        return line


def configure_logging(json_logs: bool = True, level: str = "INFO"):
    """
    Configure root logger output for the SpamZero service.

    Installs a single stdout handler on the root logger (replacing any
    existing ones to avoid duplicate lines) using `JsonFormatter`, or
    `TextFormatter` when `json_logs` is False.
    """

    root = logging.getLogger()
    root.setLevel(level)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if json_logs else TextFormatter())

    root.handlers[:] = [handler]
