"""
In-memory token store with lazy expiry and a periodic sweep.
"""
from __future__ import annotations
import logging
import threading
import time
from datetime import timedelta
from typing import Dict, Optional, Tuple, Union

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from wkit.observability.metrics import token_evictions_total

logger = logging.getLogger(__name__)

Duration = Union[int, float, timedelta]


class TokenStore:
    """Thread-safe map of name -> (token, expiration)."""

    def __init__(self):
        self._lock = threading.Lock()
        self._tokens: Dict[str, Tuple[str, float]] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)

    def store_token(self, name: str, token: str, duration: Duration) -> None:
        """Store token for name; it expires `duration` seconds from now."""
        if isinstance(duration, timedelta):
            duration = duration.total_seconds()
        expiration = time.monotonic() + duration
        with self._lock:
            self._tokens[name] = (token, expiration)

    def get_token(self, name: str) -> Optional[str]:
        """Return the token for name, or None if missing or expired."""
        now = time.monotonic()
        with self._lock:
            entry = self._tokens.get(name)
            if entry is None:
                return None
            token, expiration = entry
            if now >= expiration:
                del self._tokens[name]
                token_evictions_total.labels(reason="read").inc()
                return None
            return token

    def delete_token(self, name: str) -> None:
        with self._lock:
            self._tokens.pop(name, None)

    def clean_expired_tokens(self) -> int:
        """Remove all expired tokens. Returns how many were removed."""
        now = time.monotonic()
        with self._lock:
            expired = [name for name, (_, expiration) in self._tokens.items() if now >= expiration]
            for name in expired:
                del self._tokens[name]
        if expired:
            token_evictions_total.labels(reason="sweep").inc(len(expired))
            logger.info(f"Token sweep removed {len(expired)} expired tokens")
        return len(expired)


class TokenSweeper:
    """
    Runs TokenStore.clean_expired_tokens on a fixed interval.

    A scheduler passed in by the caller is shared: shutdown() removes only
    this sweeper's job and leaves the scheduler running.
    """

    def __init__(
        self,
        store: TokenStore,
        interval_minutes: int = 30,
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        self.store = store
        self.interval_minutes = interval_minutes
        self._owns_scheduler = scheduler is None
        self.scheduler = scheduler or BackgroundScheduler()
        self._job = None

    @property
    def running(self) -> bool:
        return self._job is not None

    @property
    def job_id(self) -> Optional[str]:
        return self._job.id if self._job is not None else None

    def start(self) -> None:
        if self._job is not None:
            return
        self._job = self.scheduler.add_job(
            self.store.clean_expired_tokens,
            IntervalTrigger(minutes=self.interval_minutes),
            name="token_sweep",
        )
        if not self.scheduler.running:
            self.scheduler.start()
        logger.info(f"Token sweeper started, interval={self.interval_minutes}m")

    def shutdown(self) -> None:
        if self._job is None:
            return
        self._job.remove()
        self._job = None
        if self._owns_scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("Token sweeper stopped")
