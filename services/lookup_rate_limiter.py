"""In-memory per-user minimum-interval gate for lookup requests."""

from __future__ import annotations

import threading
import time
from typing import Callable, Dict, Hashable, Optional

from core.logging import get_logger
from services import metrics

logger = get_logger(__name__)

DEFAULT_RATE_LIMIT_MS = 2000


class LookupRateLimiter:
    """Allow at most one call per ``interval_ms`` for each user id.

    Only allowed calls move the window forward, so a user hammering the bot
    gets through again ``interval_ms`` after their last accepted message.
    State lives in process memory and is lost on restart.
    """

    def __init__(
        self,
        interval_ms: int = DEFAULT_RATE_LIMIT_MS,
        *,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        if interval_ms < 0:
            raise ValueError("interval_ms must be >= 0")
        self._interval_seconds = interval_ms / 1000.0
        self._clock = clock or time.monotonic
        self._last_allowed: Dict[str, float] = {}
        self._lock = threading.Lock()

    @property
    def interval_ms(self) -> int:
        return int(self._interval_seconds * 1000)

    def allow(self, user_id: Hashable) -> bool:
        key = str(user_id)
        now = self._clock()
        with self._lock:
            last = self._last_allowed.get(key)
            if last is not None and (now - last) < self._interval_seconds:
                allowed = False
            else:
                self._last_allowed[key] = now
                allowed = True
        metrics.record_rate_limit("lookup", allowed)
        if not allowed:
            logger.debug("Rate limited user %s (interval=%sms)", key, self.interval_ms)
        return allowed

    def reset(self, user_id: Optional[Hashable] = None) -> None:
        with self._lock:
            if user_id is None:
                self._last_allowed.clear()
            else:
                self._last_allowed.pop(str(user_id), None)


__all__ = ["DEFAULT_RATE_LIMIT_MS", "LookupRateLimiter"]
