"""Postgres-backed generation cache repository."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from medgen.core.database import require_session_factory
from medgen.schema.generation import CacheEntry
from medgen.storage.cache_repo import CacheModeStats, CacheRecord, CacheRepository


class PostgresCacheRepository(CacheRepository):
  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory or require_session_factory()

  async def get(self, key: str) -> CacheRecord | None:
    async with self._session_factory() as session:
      row = await session.scalar(select(CacheEntry).where(CacheEntry.key == key))
      return self._model_to_record(row) if row is not None else None

  async def delete(self, key: str) -> None:
    async with self._session_factory() as session:
      await session.execute(delete(CacheEntry).where(CacheEntry.key == key))
      await session.commit()

  async def touch(self, key: str, *, now: datetime) -> int:
    async with self._session_factory() as session:
      # Increment in SQL so concurrent hits are not lost.
      stmt = update(CacheEntry).where(CacheEntry.key == key).values(hits=CacheEntry.hits + 1, last_accessed_at=now).returning(CacheEntry.hits)
      hits = await session.scalar(stmt)
      await session.commit()
      return int(hits or 0)

  async def upsert(self, record: CacheRecord) -> None:
    values = {
      "key": record.key,
      "mode": record.mode,
      "context": record.context,
      "response": record.response,
      "model": record.model,
      "tokens_used": record.tokens_used,
      "cost": record.cost,
      "hits": record.hits,
      "created_at": record.created_at,
      "last_accessed_at": record.last_accessed_at,
      "expires_at": record.expires_at,
    }
    stmt = insert(CacheEntry).values(**values)
    # Last write wins on the payload; hits are left as they are.
    stmt = stmt.on_conflict_do_update(
      index_elements=[CacheEntry.key],
      set_={
        "mode": stmt.excluded.mode,
        "context": stmt.excluded.context,
        "response": stmt.excluded.response,
        "model": stmt.excluded.model,
        "tokens_used": stmt.excluded.tokens_used,
        "cost": stmt.excluded.cost,
        "created_at": stmt.excluded.created_at,
        "last_accessed_at": stmt.excluded.last_accessed_at,
        "expires_at": stmt.excluded.expires_at,
      },
    )
    async with self._session_factory() as session:
      await session.execute(stmt)
      await session.commit()

  async def stats(self) -> list[CacheModeStats]:
    async with self._session_factory() as session:
      stmt = (
        select(CacheEntry.mode, func.count(), func.coalesce(func.sum(CacheEntry.hits), 0), func.coalesce(func.sum(CacheEntry.cost), 0), func.coalesce(func.sum(CacheEntry.cost * CacheEntry.hits), 0))
        .group_by(CacheEntry.mode)
        .order_by(CacheEntry.mode)
      )
      result = await session.execute(stmt)
      return [CacheModeStats(mode=mode, entries=int(entries), hits=int(hits), cost=Decimal(cost), saved=Decimal(saved)) for mode, entries, hits, cost, saved in result.all()]

  async def clear(self, mode: str | None = None) -> int:
    async with self._session_factory() as session:
      stmt = delete(CacheEntry)
      if mode is not None:
        stmt = stmt.where(CacheEntry.mode == mode)
      result = await session.execute(stmt)
      await session.commit()
      return int(result.rowcount or 0)

  async def purge_expired(self, *, now: datetime) -> int:
    async with self._session_factory() as session:
      result = await session.execute(delete(CacheEntry).where(CacheEntry.expires_at < now))
      await session.commit()
      return int(result.rowcount or 0)

  def _model_to_record(self, row: CacheEntry) -> CacheRecord:
    return CacheRecord(
      key=row.key,
      mode=row.mode,
      context=row.context,
      response=row.response,
      model=row.model,
      tokens_used=int(row.tokens_used),
      cost=Decimal(row.cost),
      hits=int(row.hits),
      created_at=row.created_at,
      last_accessed_at=row.last_accessed_at,
      expires_at=row.expires_at,
    )
