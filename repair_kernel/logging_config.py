"""
Structured JSON logging for the repair kernel.

Every record is one JSON object: a fixed envelope (``ts``, ``level``,
``logger``, ``message``), the request-scoped fields held by ``LogContext``,
and whatever the call site passed as ``extra``.

Approval links are capabilities.  The formatter masks the ``t=`` credential
of any approval URL and the value of any credential-named field before a
record is written, so a careless ``extra={"url": ...}`` cannot leak a live
link into log storage.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
    "redact",
]

import json
import logging
import re
import sys
import threading
from contextvars import ContextVar
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

REDACTED = "***"

# Field names whose values are credentials, wherever they appear.
_CREDENTIAL_KEYS = frozenset({
    "token",
    "customer_token_hash",
    "token_hash",
    "approval_secret",
    "secret",
})

_APPROVAL_TOKEN_RE = re.compile(r"(/approve/[^?\s]+\?(?:[^#\s]*&)?t=)[^&#\s]+")


def redact(key: str, value: Any) -> Any:
    """Mask a credential field, or the token inside an approval URL."""
    if key in _CREDENTIAL_KEYS and value is not None:
        return REDACTED
    if isinstance(value, str) and "/approve/" in value:
        return _APPROVAL_TOKEN_RE.sub(rf"\g<1>{REDACTED}", value)
    return value


# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------

_CONTEXT_FIELDS = ("correlation_id", "shop_id", "actor_id", "job_id", "trace_id")

_context_vars: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"repair_log_{name}", default=None) for name in _CONTEXT_FIELDS
}


class LogContext:
    """Request-scoped log fields (contextvars, so thread- and task-local).

    ``correlation_id`` identifies one workflow unit; ``shop_id``,
    ``actor_id`` and ``job_id`` say whose unit it is.
    """

    @classmethod
    def set(cls, **fields: str | None) -> None:
        """Set context fields.  None leaves a field unchanged."""
        for name, value in fields.items():
            if name not in _context_vars:
                raise TypeError(f"unknown log context field {name!r}")
            if value is not None:
                _context_vars[name].set(value)

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return {
            name: var.get()
            for name, var in _context_vars.items()
            if var.get() is not None
        }

    @classmethod
    def clear(cls) -> None:
        for var in _context_vars.values():
            var.set(None)

    @classmethod
    def bind(cls, **fields: str | None) -> "_BoundContext":
        """Set fields for the duration of a ``with`` block, then restore."""
        return _BoundContext(fields)


class _BoundContext:

    def __init__(self, fields: dict[str, str | None]):
        self._fields = fields
        self._tokens: list[tuple[ContextVar, Any]] = []

    def __enter__(self) -> type[LogContext]:
        for name, value in self._fields.items():
            var = _context_vars.get(name)
            if var is not None and value is not None:
                self._tokens.append((var, var.set(value)))
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    return str(obj)


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": redact("message", record.getMessage()),
        }
        payload.update(LogContext.get_all())

        for key, val in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = redact(key, val)

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = redact("exc_message", str(exc))
            code = getattr(exc, "code", None)
            if code is not None:
                payload["exc_code"] = code
            # RepairKernelError subclasses carry their context as attributes
            for key, val in vars(exc).items():
                if not key.startswith("_") and key not in ("args", "code"):
                    payload[f"exc_{key}"] = redact(key, val)
            payload["traceback"] = redact("traceback", self.formatException(record.exc_info))

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

_LOGGER_PREFIX = "repair_kernel"

_configured = False
_lock = threading.Lock()


def get_logger(name: str) -> logging.Logger:
    """``get_logger("services.approval")`` -> ``repair_kernel.services.approval``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach one JSON handler to the ``repair_kernel`` logger.

    Idempotent: only the first call (since the last ``reset_logging``) has
    any effect.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    kernel_logger = logging.getLogger(_LOGGER_PREFIX)
    kernel_logger.setLevel(level)
    kernel_logger.propagate = False

    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())
    kernel_logger.addHandler(handler)


def reset_logging() -> None:
    """Undo ``configure_logging``.  Tests only."""
    global _configured
    with _lock:
        _configured = False
    kernel_logger = logging.getLogger(_LOGGER_PREFIX)
    kernel_logger.handlers.clear()
    kernel_logger.setLevel(logging.WARNING)
