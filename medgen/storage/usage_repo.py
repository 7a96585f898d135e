"""Provider usage log storage."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from medgen.core.database import require_session_factory
from medgen.schema.generation import UsageLog


@dataclass(frozen=True)
class UsageEntry:
  identity: str | None
  mode: str
  provider: str
  model: str
  input_tokens: int
  output_tokens: int
  cost: Decimal
  topic_id: str | None = None


class UsageRepository(Protocol):
  async def record(self, entry: UsageEntry) -> None:
    """Append one usage row."""


class PostgresUsageRepository(UsageRepository):
  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory or require_session_factory()

  async def record(self, entry: UsageEntry) -> None:
    async with self._session_factory() as session:
      session.add(
        UsageLog(
          identity=entry.identity,
          mode=entry.mode,
          provider=entry.provider,
          model=entry.model,
          input_tokens=entry.input_tokens,
          output_tokens=entry.output_tokens,
          cost=entry.cost,
          topic_id=entry.topic_id,
        )
      )
      await session.commit()
