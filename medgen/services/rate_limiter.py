"""Fixed-window per-identity rate limiter.

State lives in an injectable RateLimitStore. The in-memory store is per process,
so under several workers the effective limit is per worker, not global.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol


@dataclass
class RateBucket:
  identity: str
  count: int
  window_reset_at: float


@dataclass(frozen=True)
class RateDecision:
  allowed: bool
  retry_after: float = 0.0


class RateLimitStore(Protocol):
  def hit(self, identity: str, *, limit: int, window_seconds: float, now: float) -> RateDecision:
    """Apply one request to the identity's bucket atomically."""

  def reset(self, identity: str | None = None) -> None:
    """Drop one bucket, or all of them."""


class InMemoryRateLimitStore(RateLimitStore):
  """Bucket map guarded by a mutex."""

  def __init__(self) -> None:
    self._buckets: dict[str, RateBucket] = {}
    self._lock = threading.Lock()

  def hit(self, identity: str, *, limit: int, window_seconds: float, now: float) -> RateDecision:
    with self._lock:
      bucket = self._buckets.get(identity)
      if bucket is None or now >= bucket.window_reset_at:
        self._buckets[identity] = RateBucket(identity=identity, count=1, window_reset_at=now + window_seconds)
        return RateDecision(allowed=True)

      if bucket.count < limit:
        bucket.count += 1
        return RateDecision(allowed=True)

      return RateDecision(allowed=False, retry_after=bucket.window_reset_at - now)

  def reset(self, identity: str | None = None) -> None:
    with self._lock:
      if identity is None:
        self._buckets.clear()
      else:
        self._buckets.pop(identity, None)

  def bucket(self, identity: str) -> RateBucket | None:
    with self._lock:
      return self._buckets.get(identity)


class RateLimiter:
  def __init__(self, store: RateLimitStore, *, limit: int, window_seconds: float, clock: Callable[[], float] | None = None) -> None:
    if limit <= 0:
      raise ValueError("limit must be positive.")
    if window_seconds <= 0:
      raise ValueError("window_seconds must be positive.")
    self._store = store
    self.limit = limit
    self.window_seconds = window_seconds
    self._clock = clock or time.monotonic

  def allow(self, identity: str) -> RateDecision:
    return self._store.hit(identity, limit=self.limit, window_seconds=self.window_seconds, now=self._clock())
