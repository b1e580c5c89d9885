"""
Logging configuration: JSON lines in production, console format otherwise.
"""
from __future__ import annotations
import json
import logging
import sys
from datetime import datetime, timezone, tzinfo
from typing import Any, Dict, Optional, TextIO
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from wkit.config import Settings, settings as default_settings
from wkit.wlog.context import TraceIdFilter

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def load_timezone(name: str) -> tzinfo:
    """Resolve an IANA timezone name, falling back to UTC."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


class _TimezoneMixin:
    tz: tzinfo = timezone.utc

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        return datetime.fromtimestamp(record.created, self.tz).strftime(datefmt or TIME_FORMAT)


class JSONFormatter(_TimezoneMixin, logging.Formatter):
    """JSON log formatter."""

    def __init__(self, service: str = "wkit", tz: tzinfo = timezone.utc):
        super().__init__()
        self.service = service
        self.tz = tz

    def format(self, record: logging.LogRecord) -> str:
        log_obj: Dict[str, Any] = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "line": f"{record.module}.py:{record.lineno}",
            "caller": record.funcName,
            "service": self.service,
        }

        if getattr(record, "trace_id", ""):
            log_obj["trace_id"] = record.trace_id

        # Add extra fields if present
        if hasattr(record, "request_id"):
            log_obj["request_id"] = record.request_id
        if hasattr(record, "path"):
            log_obj["path"] = record.path
        if hasattr(record, "status"):
            log_obj["status"] = record.status
        if hasattr(record, "duration_ms"):
            log_obj["duration_ms"] = record.duration_ms
        if hasattr(record, "error"):
            log_obj["error"] = record.error
        for key, value in getattr(record, "fields", {}).items():
            log_obj.setdefault(key, value)

        # Add exception info if present
        if record.exc_info:
            log_obj["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str, ensure_ascii=False)


class ConsoleFormatter(_TimezoneMixin, logging.Formatter):
    """Human-readable formatter; appends trace id and structured fields."""

    def __init__(self, tz: tzinfo = timezone.utc):
        super().__init__("%(asctime)s %(levelname)s %(name)s: %(message)s")
        self.tz = tz

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = []
        if getattr(record, "trace_id", ""):
            extras.append(f"trace_id={record.trace_id}")
        if hasattr(record, "error"):
            extras.append(f"error={record.error}")
        extras.extend(f"{k}={v}" for k, v in getattr(record, "fields", {}).items())
        if extras:
            line = f"{line} [{' '.join(extras)}]"
        return line


class LogManager:
    """
    Owns the process log handler. Created by the composition root;
    call shutdown() to flush and detach it.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        stream: Optional[TextIO] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.settings = settings or default_settings
        self.stream = stream
        self.logger = logger or logging.getLogger()
        self.handler: Optional[logging.Handler] = None

    @property
    def use_json(self) -> bool:
        return self.settings.LOG_JSON or self.settings.is_production

    def start(self) -> logging.Handler:
        if self.handler is not None:
            return self.handler

        tz = load_timezone(self.settings.LOG_TIMEZONE)
        handler = logging.StreamHandler(self.stream or sys.stdout)
        handler.addFilter(TraceIdFilter())

        if self.use_json:
            handler.setFormatter(JSONFormatter(service=self.settings.SERVICE_NAME, tz=tz))
        else:
            handler.setFormatter(ConsoleFormatter(tz=tz))

        self.logger.addHandler(handler)
        self.logger.setLevel(self.settings.LOG_LEVEL.upper())
        self.handler = handler
        return handler

    def flush(self) -> None:
        if self.handler is not None:
            self.handler.flush()

    def shutdown(self) -> None:
        if self.handler is None:
            return
        self.handler.flush()
        self.logger.removeHandler(self.handler)
        self.handler.close()
        self.handler = None


def configure_logging(
    settings: Optional[Settings] = None,
    stream: Optional[TextIO] = None,
) -> LogManager:
    """
    Configure root logging.
    JSON output when LOG_JSON=true or ENV=production.
    """
    manager = LogManager(settings, stream)
    manager.start()
    return manager
