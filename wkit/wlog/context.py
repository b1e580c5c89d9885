"""
Trace id propagation for log records.
"""
import logging
from contextvars import ContextVar, Token

_trace_id: ContextVar[str] = ContextVar("trace_id", default="")


def with_trace_id(trace_id: str) -> Token:
    """Bind trace_id to the current context. Pass the token to reset_trace_id."""
    return _trace_id.set(trace_id)


def reset_trace_id(token: Token) -> None:
    _trace_id.reset(token)


def get_trace_id() -> str:
    """Current trace id, or an empty string if none was bound."""
    return _trace_id.get()


class TraceIdFilter(logging.Filter):
    """Stamp records with the bound trace id unless one was passed explicitly."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "trace_id", ""):
            record.trace_id = _trace_id.get()
        return True
