from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict


@dataclass
class RateLimiter:
    max_requests: int
    window_sec: float
    clock: Callable[[], float] = time.monotonic
    _buckets: Dict[str, Deque[float]] = field(default_factory=dict)

    @classmethod
    def create(cls, *, max_requests: int, window_sec: float) -> "RateLimiter":
        return cls(max_requests=max_requests, window_sec=window_sec)

    def allow(self, key: str) -> bool:
        if self.max_requests <= 0:
            return True

        now = self.clock()
        bucket = self._buckets.setdefault(key, deque())
        cutoff = now - self.window_sec
        while bucket and bucket[0] <= cutoff:
            bucket.popleft()

        if len(bucket) >= self.max_requests:
            return False

        bucket.append(now)
        return True
