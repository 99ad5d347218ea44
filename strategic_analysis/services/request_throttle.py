"""Fixed-window per-caller request cap for the analyze endpoint."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable

from strategic_analysis.core.errors import RateLimitExceeded

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Window:
    started_at: float
    count: int


class RequestThrottle:
    """Allow ``limit`` requests per caller in each ``window_seconds`` window."""

    def __init__(
        self,
        *,
        limit: int = 30,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}

    def check(self, caller: str) -> None:
        """Record one request for ``caller`` or raise ``RateLimitExceeded``."""
        now = self._clock()
        self._evict_expired(now)

        window = self._windows.get(caller)
        if window is None:
            self._windows[caller] = _Window(started_at=now, count=1)
            return
        if window.count >= self._limit:
            retry_after = window.started_at + self._window_seconds - now
            logger.warning("Throttled caller %s for %.0fs.", caller, retry_after)
            raise RateLimitExceeded(
                "Too many requests, please try again later.",
                retry_after=max(1, math.ceil(retry_after)),
                details={
                    "limit": self._limit,
                    "window_seconds": self._window_seconds,
                },
            )
        window.count += 1

    def _evict_expired(self, now: float) -> None:
        expired = [
            caller
            for caller, window in self._windows.items()
            if now - window.started_at >= self._window_seconds
        ]
        for caller in expired:
            del self._windows[caller]


__all__ = ["RequestThrottle"]
