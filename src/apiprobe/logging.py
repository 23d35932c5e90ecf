"""Structured logging configuration."""

import json
import logging
from contextvars import ContextVar
from datetime import UTC, datetime

# Set for the duration of one execute() call so every log line emitted while
# building, sending and logging that request carries the same id.
execution_id_var: ContextVar[str | None] = ContextVar("execution_id", default=None)


class ExecutionIDFilter(logging.Filter):
    """Logging filter that injects ``execution_id`` into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.execution_id = execution_id_var.get()  # type: ignore[attr-defined]
        return True


class JSONFormatter(logging.Formatter):
    """JSON log formatter for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1]:
            log_entry["error"] = {
                "type": type(record.exc_info[1]).__name__,
                "message": str(record.exc_info[1]),
                "stacktrace": self.formatException(record.exc_info),
            }
        eid = getattr(record, "execution_id", None)
        if eid is not None:
            log_entry["execution_id"] = eid
        return json.dumps(log_entry, default=str)


def configure_logging(*, log_format: str = "text", debug: bool = False) -> None:
    """Configure root logger with the specified format."""
    level = logging.DEBUG if debug else logging.INFO
    root = logging.getLogger()
    root.setLevel(level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.addFilter(ExecutionIDFilter())

    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )

    root.addHandler(handler)
