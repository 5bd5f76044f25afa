"""
Pipeline logging -- one JSON object per line under the ``stock_kernel`` tree.

Every line carries:
    ts, level, logger, message
    the pipeline context in force when it was emitted (worker_id, job_id,
        order_id, material_id; absent fields are omitted)
    the ``extra={}`` fields of the call, e.g. ``delta_cm`` on stock_adjusted
    for records logged with exc_info: exc_type, exc_message, exc_code (kernel
        errors only), one ``exc_<attr>`` per public attribute of the error,
        and the traceback

The worker binds ``worker_id`` around a tick, the processor binds ``job_id``
around one job and ``order_id``/``material_id`` around the recompute, so a
ledger line written deep inside the recompute still says which job and
order caused it.
"""

__all__ = [
    "CONTEXT_FIELDS",
    "LogContext",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator, Mapping

ROOT_LOGGER_NAME = "stock_kernel"

CONTEXT_FIELDS = ("worker_id", "job_id", "order_id", "material_id")

_context: ContextVar[Mapping[str, str]] = ContextVar("stock_log_context", default={})


# =============================================================================
# Pipeline context
# =============================================================================


class LogContext:
    """Fields stamped on every line logged inside a ``bind`` block."""

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set({})

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """
        Layer ``fields`` over the current context for the ``with`` block.

        Values are stringified; None leaves an outer value in place.

        Raises:
            TypeError: A field outside CONTEXT_FIELDS.
        """
        unknown = set(fields) - set(CONTEXT_FIELDS)
        if unknown:
            raise TypeError(f"unknown log context field(s): {sorted(unknown)}")
        merged = dict(_context.get())
        merged.update({k: str(v) for k, v in fields.items() if v is not None})
        token = _context.set(merged)
        try:
            yield
        finally:
            _context.reset(token)


# =============================================================================
# JSON lines
# =============================================================================

# Attributes every LogRecord has; anything else on a record came from extra={}.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "taskName",
}


def _to_json(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    # UUID, Decimal and anything else json cannot encode
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if name != "code" and not name.startswith("_"):
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """Render a record as a single JSON line (see module docstring)."""

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        line.update(_context.get())
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                line.setdefault(key, value)

        exc = record.exc_info[1] if record.exc_info else None
        if exc is not None:
            line.update(_exception_fields(exc))
            line["traceback"] = self.formatException(record.exc_info)
        return json.dumps(line, default=_to_json)


# =============================================================================
# Setup
# =============================================================================


def get_logger(name: str) -> logging.Logger:
    """Logger ``stock_kernel.<name>``; batch modules use ``batch.*`` names."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


_setup_lock = threading.Lock()
_installed: logging.Handler | None = None


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Install the JSON handler on ``stock_kernel``.

    Only the first call has an effect until reset_logging().  Output goes to
    ``handler`` if given, else a stream handler on ``stream`` (stderr by
    default).  The tree stops propagating to the root logger.
    """
    global _installed
    with _setup_lock:
        if _installed is not None:
            return
        _installed = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
        _installed.setFormatter(StructuredFormatter())
        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.setLevel(level)
        root.propagate = False
        root.addHandler(_installed)


def reset_logging() -> None:
    """Remove the installed handler and restore defaults (tests)."""
    global _installed
    with _setup_lock:
        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.handlers.clear()
        root.setLevel(logging.WARNING)
        root.propagate = True
        _installed = None
