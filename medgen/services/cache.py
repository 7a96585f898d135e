"""Content-addressed cache for generation results.

Keys are a SHA-256 over a canonical JSON encoding of ``(mode, model_hint, context)``,
so identical inputs hit the same row regardless of dict ordering. Every failure in
this module is logged and treated as a miss; the cache never fails a generation.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

from medgen.storage.cache_repo import CacheModeStats, CacheRecord, CacheRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheHit:
  key: str
  response: dict[str, Any]
  model: str
  hits: int
  age_seconds: float


def normalize_context(value: Any) -> Any:
  """Strip strings and drop null or empty-string fields, recursively."""
  if isinstance(value, str):
    return value.strip()
  if isinstance(value, dict):
    normalized: dict[str, Any] = {}
    for key, item in value.items():
      if item is None:
        continue
      cleaned = normalize_context(item)
      if cleaned == "":
        continue
      normalized[str(key)] = cleaned
    return normalized
  if isinstance(value, (list, tuple)):
    return [normalize_context(item) for item in value]
  return value


def compute_cache_key(mode: str, model_hint: str, context: dict[str, Any]) -> str:
  """Deterministic hex key for a (mode, model_hint, context) triple."""
  canonical = json.dumps({"mode": mode, "model_hint": model_hint, "context": normalize_context(context)}, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
  return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class CacheStore:
  """Lookaside cache over a CacheRepository with a fixed TTL."""

  def __init__(self, repo: CacheRepository, *, ttl_seconds: int, clock: Callable[[], datetime] | None = None) -> None:
    self._repo = repo
    self._ttl = timedelta(seconds=ttl_seconds)
    self._clock = clock or (lambda: datetime.now(UTC))

  async def lookup(self, mode: str, model_hint: str, context: dict[str, Any]) -> CacheHit | None:
    key = compute_cache_key(mode, model_hint, context)
    now = self._clock()
    try:
      record = await self._repo.get(key)
      if record is None:
        return None

      # Expired rows are logically absent; evict on discovery.
      if record.expires_at < now:
        logger.info("Cache entry expired for mode %s (key %s); evicting.", mode, key[:12])
        await self._repo.delete(key)
        return None

      hits = await self._repo.touch(key, now=now)
    except Exception:  # noqa: BLE001
      logger.warning("Cache lookup failed for mode %s; treating as miss.", mode, exc_info=True)
      return None

    age = max(0.0, (now - record.created_at).total_seconds())
    logger.info("Cache hit for mode %s (key %s, hits=%s).", mode, key[:12], hits)
    return CacheHit(key=key, response=record.response, model=record.model, hits=hits, age_seconds=age)

  async def store(self, mode: str, model_hint: str, context: dict[str, Any], response: dict[str, Any], *, model: str, tokens_used: int, cost: Decimal) -> None:
    key = compute_cache_key(mode, model_hint, context)
    now = self._clock()
    record = CacheRecord(
      key=key,
      mode=mode,
      context=normalize_context(context),
      response=response,
      model=model,
      tokens_used=tokens_used,
      cost=cost,
      hits=0,
      created_at=now,
      last_accessed_at=now,
      expires_at=now + self._ttl,
    )
    try:
      await self._repo.upsert(record)
    except Exception:  # noqa: BLE001
      logger.warning("Cache write failed for mode %s; continuing without cache.", mode, exc_info=True)

  async def stats(self) -> dict[str, Any]:
    rows: list[CacheModeStats] = await self._repo.stats()
    by_mode = {row.mode: {"entries": row.entries, "hits": row.hits, "cost": float(row.cost), "saved": float(row.saved)} for row in rows}
    totals = {
      "entries": sum(row.entries for row in rows),
      "hits": sum(row.hits for row in rows),
      "cost": float(sum((row.cost for row in rows), Decimal("0"))),
      "saved": float(sum((row.saved for row in rows), Decimal("0"))),
    }
    return {"totals": totals, "by_mode": by_mode}

  async def clear(self, mode: str | None = None) -> int:
    deleted = await self._repo.clear(mode)
    logger.info("Cleared %s cache entries (mode=%s).", deleted, mode or "all")
    return deleted

  async def purge_expired(self) -> int:
    deleted = await self._repo.purge_expired(now=self._clock())
    logger.info("Purged %s expired cache entries.", deleted)
    return deleted
