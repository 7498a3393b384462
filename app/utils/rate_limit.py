import time
from collections import deque
from threading import Lock
from typing import Callable, Deque, Dict


class SlidingWindowLimiter:
    """In-process attempt counter over a sliding time window, keyed by caller."""

    def __init__(
        self,
        max_attempts: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._clock = clock
        self._attempts: Dict[str, Deque[float]] = {}
        self._lock = Lock()

    def _prune(self, key: str, now: float) -> Deque[float]:
        attempts = self._attempts.get(key)
        if attempts is None:
            return deque()
        cutoff = now - self.window_seconds
        while attempts and attempts[0] <= cutoff:
            attempts.popleft()
        if not attempts:
            # idle keys are dropped so the map only holds callers inside the window
            del self._attempts[key]
        return attempts

    def is_limited(self, key: str) -> bool:
        with self._lock:
            attempts = self._prune(key, self._clock())
            return len(attempts) >= self.max_attempts

    def hit(self, key: str) -> bool:
        """Record one attempt; False when the key was already over its budget."""
        with self._lock:
            now = self._clock()
            attempts = self._prune(key, now)
            if len(attempts) >= self.max_attempts:
                return False
            attempts.append(now)
            self._attempts[key] = attempts
            return True

    def reset(self, key: str) -> None:
        with self._lock:
            self._attempts.pop(key, None)
