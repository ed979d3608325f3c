"""
JSON logging for the procurement core.

Every logger lives under the ``procurement`` namespace and writes one JSON
object per line.  Document scope (which document a service is working on,
which actor asked) is carried in a context variable and merged into every
line emitted while it is bound.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from typing import IO, Any

ROOT_LOGGER = "procurement"


class LogContext:
    """Document scope attached to every log line of the current task."""

    FIELDS = ("correlation_id", "actor_id", "document_type", "document_id", "trace_id")

    _scope: ContextVar[dict[str, str]] = ContextVar("procurement_log_scope", default={})

    @classmethod
    def set(
        cls,
        *,
        correlation_id: str | None = None,
        actor_id: str | None = None,
        document_type: str | None = None,
        document_id: str | None = None,
        trace_id: str | None = None,
    ) -> None:
        """Add fields to the scope; ``None`` leaves a field as it is."""
        cls._scope.set(cls._merged(
            correlation_id=correlation_id,
            actor_id=actor_id,
            document_type=document_type,
            document_id=document_id,
            trace_id=trace_id,
        ))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(cls._scope.get())

    @classmethod
    def clear(cls) -> None:
        cls._scope.set({})

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[None]:
        """Scope ``fields`` to a ``with`` block, then put the old scope back."""
        unknown = set(fields) - set(cls.FIELDS)
        if unknown:
            raise TypeError(f"Unknown log context fields: {sorted(unknown)}")
        token = cls._scope.set(cls._merged(**fields))
        try:
            yield
        finally:
            cls._scope.reset(token)

    @classmethod
    def _merged(cls, **fields: Any) -> dict[str, str]:
        scope = dict(cls._scope.get())
        scope.update({k: str(v) for k, v in fields.items() if v is not None})
        return scope


# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, scope, extras, error."""

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                line.setdefault(key, value)

        error = record.exc_info[1] if record.exc_info else None
        if error is not None:
            line["exc_type"] = type(error).__name__
            line["exc_message"] = str(error)
            code = getattr(error, "code", None)
            if code is not None:
                line["exc_code"] = code
            # ProcurementError subclasses keep their details as attributes.
            for key, value in vars(error).items():
                if not key.startswith("_") and key != "code":
                    line[f"exc_{key}"] = value
            line["traceback"] = self.formatException(record.exc_info)

        return json.dumps(line, default=_jsonable)


def get_logger(name: str) -> logging.Logger:
    """Logger ``procurement.<name>``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: IO[str] | None = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach a JSON handler to the ``procurement`` logger.

    Does nothing once the logger has a handler, so callers that each
    configure logging on start-up share the first configuration.
    """
    root = logging.getLogger(ROOT_LOGGER)
    if root.handlers:
        return
    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())
    root.setLevel(level)
    root.propagate = False
    root.addHandler(handler)


def reset_logging() -> None:
    """Detach every handler so the next ``configure_logging`` call applies."""
    root = logging.getLogger(ROOT_LOGGER)
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(logging.NOTSET)
    root.propagate = True
