import threading
import time
from folio.configs import (
    RATE_LIMIT_CAPACITY, RATE_LIMIT_REFILL_PER_SECOND, RATE_LIMIT_MAX_CLIENTS
)


class TokenBucketRateLimiter:
    """Token bucket per client key.

    Each key starts with `capacity` tokens and regains
    `refill_rate` tokens per second up to `capacity`; a hit spends one.
    Once `max_keys` clients are tracked, buckets that have refilled to
    capacity are dropped, since a new bucket would be identical.
    Instances are created at start-up and injected where needed.
    """

    def __init__(self, capacity=RATE_LIMIT_CAPACITY, refill_rate=RATE_LIMIT_REFILL_PER_SECOND,
                 clock=time.monotonic, max_keys=RATE_LIMIT_MAX_CLIENTS):
        self.capacity = capacity
        self.refill_rate = refill_rate
        self.clock = clock
        self.max_keys = max_keys
        self._buckets = {}
        self._lock = threading.Lock()

    def _refilled(self, tokens, updated, now):
        return min(self.capacity, tokens + (now - updated) * self.refill_rate)

    def _prune(self, now):
        for key, (tokens, updated) in list(self._buckets.items()):
            if self._refilled(tokens, updated, now) >= self.capacity:
                del self._buckets[key]

    def hit(self, key: str) -> bool:
        """Spends a token for `key`; False when the bucket is empty."""
        now = self.clock()
        with self._lock:
            if key not in self._buckets and len(self._buckets) >= self.max_keys:
                self._prune(now)
            tokens, updated = self._buckets.get(key, (self.capacity, now))
            tokens = self._refilled(tokens, updated, now)
            allowed = tokens >= 1
            if allowed:
                tokens -= 1
            self._buckets[key] = (tokens, now)
            return allowed

    def reset(self, key=None):
        with self._lock:
            if key is None:
                self._buckets.clear()
            else:
                self._buckets.pop(key, None)
