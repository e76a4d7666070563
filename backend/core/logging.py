"""
Structured logging with per-request trace ids.

Every log record emitted while a request is in flight carries the request's
trace id, so a `traceId` returned in an error envelope can be matched against
the server logs.

Usage:
    from core.logging import get_logger, trace_context

    logger = get_logger(__name__)

    with trace_context("abc123"):
        logger.info("Allocating order")  # includes traceId=abc123
"""

import json
import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional


_trace_id: ContextVar[Optional[str]] = ContextVar("trace_id", default=None)

# LogRecord attributes that are never treated as extra context
_RESERVED_ATTRS = set(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}


def new_trace_id() -> str:
    return uuid.uuid4().hex


def get_trace_id() -> Optional[str]:
    return _trace_id.get()


def set_trace_id(trace_id: Optional[str]):
    """Set the trace id for the current context; returns the reset token."""
    return _trace_id.set(trace_id)


def reset_trace_id(token) -> None:
    _trace_id.reset(token)


@contextmanager
def trace_context(trace_id: Optional[str] = None):
    token = _trace_id.set(trace_id or new_trace_id())
    try:
        yield _trace_id.get()
    finally:
        _trace_id.reset(token)


class TraceIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = get_trace_id()
        return True


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter. One line per record:

    {"timestamp": "...", "level": "INFO", "logger": "routers.orders",
     "message": "Order allocated", "traceId": "...", "context": "..."}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        trace_id = getattr(record, "trace_id", None)
        if trace_id:
            log_data["traceId"] = trace_id

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key == "trace_id" or key.startswith("_"):
                continue
            log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    def __init__(self):
        super().__init__("%(asctime)s %(levelname)s [%(name)s] [trace=%(trace_id)s] %(message)s")


_configured = False


def configure_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Install a single stdout handler on the root logger (idempotent)."""
    global _configured
    root = logging.getLogger()
    root.setLevel(level.upper())
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(TraceIdFilter())
    handler.setFormatter(StructuredFormatter() if fmt == "json" else TextFormatter())
    root.addHandler(handler)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


_system_logger = logging.getLogger("system")


def log_system_info(message: str, **context: Any) -> None:
    _system_logger.info(message, extra=context)


def log_system_warning(message: str, **context: Any) -> None:
    _system_logger.warning(message, extra=context)


def log_system_exception(exc: BaseException, message: str, **context: Any) -> None:
    context.setdefault("error", str(exc))
    context.setdefault("errorType", type(exc).__name__)
    _system_logger.error(message, exc_info=exc, extra=context)
