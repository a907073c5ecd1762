"""
In-process fixed-window rate limiting.

Counters live in the worker's memory: they are not shared between
processes and are lost on restart.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional
import threading
import time
import logging

from fastapi import Request

logger = logging.getLogger(__name__)


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """
    Allow at most ``limit`` hits per ``window_seconds`` for each key.
    """

    def __init__(
        self,
        name: str,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic
    ):
        self.name = name
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> bool:
        """Record a request for ``key``; return False when it is over the limit."""
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now > window.reset_at:
                self._windows[key] = _Window(count=1, reset_at=now + self.window_seconds)
                return True

            if window.count >= self.limit:
                logger.warning(f"Rate limit '{self.name}' exceeded for {key}")
                return False

            window.count += 1
            return True

    def remaining(self, key: str) -> int:
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now > window.reset_at:
                return self.limit
            return max(0, self.limit - window.count)

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)


def client_ip(request: Request) -> str:
    """
    Resolve the caller's IP the way a proxied deployment sees it.

    Takes the first entry of ``x-forwarded-for``, then ``x-real-ip``,
    then the socket peer.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host
    return "unknown"
