import threading
import time
from typing import Dict, Tuple

from fastapi import Depends, Request

from ..core.config import settings
from ..core.exceptions import RateLimitError
from ..utils.logger import logger
from .auth_middleware import get_current_user


class FixedWindowRateLimiter:
    """
    Counts hits per key inside fixed windows of ``window`` seconds.

    Expired windows are pruned at most once per ``prune_interval`` seconds.
    """

    def __init__(self, prune_interval: float = 60.0):
        self._windows: Dict[str, Tuple[float, int, float]] = {}
        self._lock = threading.Lock()
        self._prune_interval = prune_interval
        self._last_prune = time.monotonic()

    def hit(self, key: str, limit: int, window: float) -> bool:
        """Record a hit; False when the key is over its limit for the current window."""
        now = time.monotonic()
        with self._lock:
            if now - self._last_prune >= self._prune_interval:
                self._prune(now)

            started, count, _ = self._windows.get(key, (now, 0, window))
            if now - started >= window:
                started, count = now, 0
            if count >= limit:
                self._windows[key] = (started, count, window)
                return False
            self._windows[key] = (started, count + 1, window)
            return True

    def _prune(self, now: float) -> None:
        expired = [key for key, (started, _, window) in self._windows.items() if now - started >= window]
        for key in expired:
            del self._windows[key]
        self._last_prune = now

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


limiter = FixedWindowRateLimiter()


def rate_limit(name: str, limit: int, window: float = 60.0):
    """
    Dependency factory limiting an endpoint to ``limit`` calls per user per window.
    """
    async def checker(request: Request, user_id: int = Depends(get_current_user)) -> None:
        if not settings.rate_limit_enabled:
            return
        key = f"{name}:{user_id}"
        if not limiter.hit(key, limit, window):
            logger.warning("Rate limit exceeded", endpoint=name, user_id=user_id, limit=limit, path=request.url.path)
            raise RateLimitError(f"Rate limit exceeded: {limit} requests per {int(window)} seconds")

    return checker
