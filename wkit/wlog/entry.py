"""
Fluent log entries:

    msg("order created").field("order_id", oid).info()
    msgf("retry %d of %d", n, total).err(exc).warn()
"""
from __future__ import annotations
import logging
from typing import Any, Dict, Optional

# logger.log <- _write <- level method <- caller
DEFAULT_STACK_LEVEL = 3


class LoggerEntry:
    def __init__(self, message: str, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("wkit")
        self.message = message
        self.fields: Dict[str, Any] = {}
        self.exc: Optional[BaseException] = None
        self.trace_id = ""
        self.stack_skip = 0

    def trace(self, trace_id: str) -> "LoggerEntry":
        """Use trace_id instead of the one bound to the current context."""
        if trace_id:
            self.trace_id = trace_id
        return self

    def field(self, key: str, value: Any) -> "LoggerEntry":
        self.fields[key] = value
        return self

    def err(self, error: BaseException) -> "LoggerEntry":
        self.exc = error
        return self

    def skip(self, skip: int) -> "LoggerEntry":
        """
        Report the caller `skip` frames further up.
        With A -> B -> C -> log call, skip(1) reports B's call to C.
        """
        self.stack_skip = skip
        return self

    def _write(self, level: int) -> None:
        if not self.logger.isEnabledFor(level):
            return
        extra: Dict[str, Any] = {"fields": self.fields}
        if self.exc is not None:
            extra["error"] = str(self.exc)
        if self.trace_id:
            extra["trace_id"] = self.trace_id
        self.logger.log(
            level,
            self.message,
            extra=extra,
            stacklevel=DEFAULT_STACK_LEVEL + self.stack_skip,
        )

    def debug(self) -> None:
        self._write(logging.DEBUG)

    def info(self) -> None:
        self._write(logging.INFO)

    def warn(self) -> None:
        self._write(logging.WARNING)

    def error(self) -> None:
        self._write(logging.ERROR)

    def fatal(self) -> None:
        """Log at CRITICAL and exit the process."""
        self._write(logging.CRITICAL)
        raise SystemExit(1)

    def panic(self) -> None:
        """Log at CRITICAL and raise RuntimeError."""
        self._write(logging.CRITICAL)
        raise RuntimeError(self.message)


def msg(message: str, logger: Optional[logging.Logger] = None) -> LoggerEntry:
    return LoggerEntry(message, logger)


def msgf(fmt: str, *args: Any) -> LoggerEntry:
    return LoggerEntry(fmt % args if args else fmt)
