"""
In-process fixed-window rate limiter.

Counters live in this process only. Namespaces (general API, admin, auth) are
just identifier prefixes chosen by the caller.
"""
import asyncio
import threading
import time
from dataclasses import dataclass
from typing import Callable

from app.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RateLimitEntry:
    count: int
    window_start: float  # ms
    last_seen: float     # ms


class RateLimiter:
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    def _fresh(self, entry: RateLimitEntry | None, now: float, window_ms: int) -> bool:
        return entry is None or now - entry.window_start > window_ms

    def allow(self, identifier: str, limit: int, window_ms: int) -> bool:
        return self.acquire([(identifier, limit)], window_ms) is None

    def acquire(self, budgets: list[tuple[str, int]], window_ms: int) -> str | None:
        """
        Check every ``(identifier, limit)`` first, then count the request
        against all of them. Returns the first exhausted identifier (nothing
        is counted) or None when the request fits every budget.
        """
        now = self._now_ms()
        with self._lock:
            for identifier, limit in budgets:
                entry = self._entries.get(identifier)
                used = 0 if self._fresh(entry, now, window_ms) else entry.count
                if used >= limit:
                    if entry is not None:
                        entry.last_seen = now
                    return identifier

            for identifier, _ in budgets:
                entry = self._entries.get(identifier)
                if self._fresh(entry, now, window_ms):
                    self._entries[identifier] = RateLimitEntry(count=1, window_start=now, last_seen=now)
                else:
                    entry.count += 1
                    entry.last_seen = now
            return None

    def retry_after(self, identifier: str, window_ms: int) -> int:
        """Seconds until the identifier's current window closes (min 1)."""
        now = self._now_ms()
        with self._lock:
            entry = self._entries.get(identifier)
            if entry is None:
                return 1
            remaining = window_ms - (now - entry.window_start)
        return max(1, int(remaining // 1000) + (1 if remaining % 1000 else 0))

    def sweep(self, max_idle_ms: int) -> int:
        now = self._now_ms()
        with self._lock:
            stale = [k for k, e in self._entries.items() if now - e.last_seen > max_idle_ms]
            for k in stale:
                del self._entries[k]
        if stale:
            logger.debug("rate_limit_swept", removed=len(stale))
        return len(stale)

    async def run_sweeper(self, interval_s: float, max_idle_ms: int) -> None:
        while True:
            await asyncio.sleep(interval_s)
            self.sweep(max_idle_ms)

    def tracked(self) -> int:
        with self._lock:
            return len(self._entries)

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()


rate_limiter = RateLimiter()
