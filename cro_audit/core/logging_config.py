"""Structured JSON logging configuration.

Every record carries the request id and, inside project routes, the project
id, so the log lines of one agent run (including its concurrent tool calls)
can be grouped.
"""

import contextvars
import logging
import uuid

from pythonjsonlogger.json import JsonFormatter

request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="")
project_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("project_id", default="")


class LogContextFilter(logging.Filter):
    """Inject request_id and project_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("")  # type: ignore[attr-defined]
        record.project_id = project_id_var.get("")  # type: ignore[attr-defined]
        return True


def setup_logging(*, debug: bool = False) -> None:
    """Configure root logger with JSON formatter and context filter."""
    handler = logging.StreamHandler()
    formatter = JsonFormatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s %(project_id)s",
        rename_fields={"asctime": "timestamp", "levelname": "level"},
    )
    handler.setFormatter(formatter)
    handler.addFilter(LogContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if debug else logging.INFO)

    # httpx logs every Bedrock request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def generate_request_id() -> str:
    """Generate a new request ID."""
    return uuid.uuid4().hex[:16]


def bind_project(project_id: uuid.UUID) -> None:
    """Tag the current context's log records with a project id."""
    project_id_var.set(str(project_id))
