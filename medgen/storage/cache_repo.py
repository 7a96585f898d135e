"""Storage interface for the generation cache."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Protocol


@dataclass(frozen=True)
class CacheRecord:
  key: str
  mode: str
  context: dict[str, Any]
  response: dict[str, Any]
  model: str
  tokens_used: int
  cost: Decimal
  hits: int
  created_at: datetime
  last_accessed_at: datetime
  expires_at: datetime


@dataclass(frozen=True)
class CacheModeStats:
  mode: str
  entries: int
  hits: int
  cost: Decimal
  saved: Decimal


class CacheRepository(Protocol):
  async def get(self, key: str) -> CacheRecord | None:
    """Point lookup by key, including expired rows."""

  async def delete(self, key: str) -> None:
    """Remove one entry."""

  async def touch(self, key: str, *, now: datetime) -> int:
    """Increment hits, bump last_accessed_at and return the new hit count."""

  async def upsert(self, record: CacheRecord) -> None:
    """Insert or overwrite an entry without resetting its hit count."""

  async def stats(self) -> list[CacheModeStats]:
    """Per-mode entry count, hits, stored cost and saved cost."""

  async def clear(self, mode: str | None = None) -> int:
    """Delete all entries, or one mode's entries; return the count."""

  async def purge_expired(self, *, now: datetime) -> int:
    """Delete entries whose expiry has passed; return the count."""
