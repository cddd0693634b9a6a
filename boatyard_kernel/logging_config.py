"""
Structured JSON logging for the boatyard kernel.

Responsibility:
    Emit one JSON object per log line from every ``boatyard_kernel.*``
    logger, stamped with the fields of the governance command currently
    running (correlation id, actor, project, operation).

Architecture position:
    Kernel infrastructure.  Services bind the command fields once in
    ``GovernanceService._run``; repositories, engines and the auditor just
    log.  Messages are snake_case event names, details travel in ``extra``.

Invariants enforced:
    - Only the four command fields may be bound; anything else is a
      ``ValueError`` at bind time, not a silently dropped key.
    - ``LogContext.bind`` restores exactly the fields that were bound
      before it, including across nested binds and failed commands.
    - ``configure_logging`` installs at most one handler until
      ``reset_logging`` is called.

Failure modes:
    - A value ``json`` cannot encode falls back to ``str(value)``; a log
      line is never lost to an encoding error.
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import IO, Any
from uuid import UUID

ROOT_LOGGER_NAME = "boatyard_kernel"

CONTEXT_FIELDS = ("correlation_id", "actor_id", "project_id", "operation")

_EMPTY: Mapping[str, str] = MappingProxyType({})
_command_fields: ContextVar[Mapping[str, str]] = ContextVar(
    "boatyard_log_fields", default=_EMPTY
)


def _merged(fields: dict[str, Any]) -> Mapping[str, str]:
    unknown = sorted(set(fields) - set(CONTEXT_FIELDS))
    if unknown:
        raise ValueError(f"Unknown log context field(s): {', '.join(unknown)}")
    current = dict(_command_fields.get())
    current.update({name: str(value) for name, value in fields.items() if value is not None})
    return MappingProxyType(current)


class LogContext:
    """
    Command-scoped log fields.

    Contract:
        Backed by one ``ContextVar`` holding a read-only mapping, so each
        thread and each asyncio task sees its own command.  ``None`` values
        leave the field as it was.
    """

    @staticmethod
    def set(**fields: Any) -> None:
        _command_fields.set(_merged(fields))

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_command_fields.get())

    @staticmethod
    def clear() -> None:
        _command_fields.set(_EMPTY)

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """Bind fields for the duration of a ``with`` block."""
        token = _command_fields.set(_merged(fields))
        try:
            yield
        finally:
            _command_fields.reset(token)


# Attributes every LogRecord carries; anything else on a record came from ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "taskName",
}


def _encode(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    # Kernel errors carry their subject (project_id, status, ...) as attributes.
    for name, value in vars(exc).items():
        if not name.startswith("_"):
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """Render a record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_command_fields.get(),
        }
        for name, value in vars(record).items():
            if name not in _RECORD_ATTRS and name not in line:
                line[name] = value

        if record.exc_info and record.exc_info[1] is not None:
            line.update(_exception_fields(record.exc_info[1]))
            line["traceback"] = self.formatException(record.exc_info)

        return json.dumps(line, default=_encode)


def get_logger(name: str) -> logging.Logger:
    """Logger under the kernel root, e.g. ``get_logger("services.project")``."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


_install_lock = threading.Lock()
_installed_handler: logging.Handler | None = None


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: IO[str] | None = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Route kernel logs through ``StructuredFormatter``.

    ``handler`` wins over ``stream``; with neither, lines go to stderr.
    Calls after the first are no-ops until ``reset_logging``.
    """
    global _installed_handler
    with _install_lock:
        if _installed_handler is not None:
            return
        chosen = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
        chosen.setFormatter(StructuredFormatter())

        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.setLevel(level)
        root.propagate = False
        root.addHandler(chosen)
        _installed_handler = chosen


def reset_logging() -> None:
    """Detach every kernel handler and drop back to WARNING."""
    global _installed_handler
    with _install_lock:
        root = logging.getLogger(ROOT_LOGGER_NAME)
        for attached in list(root.handlers):
            root.removeHandler(attached)
        root.setLevel(logging.WARNING)
        _installed_handler = None
