"""Postgres-backed access to topic, flashcard and question rows."""

from __future__ import annotations

from typing import Any

from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from medgen.ai.pipeline.contracts import TopicSnapshot
from medgen.core.database import require_session_factory
from medgen.schema.topics import Flashcard, Question, Topic
from medgen.storage.topics_repo import TopicsRepository


class PostgresTopicsRepository(TopicsRepository):
  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory or require_session_factory()

  async def get_topic(self, topic_id: str) -> TopicSnapshot | None:
    async with self._session_factory() as session:
      row = await session.scalar(select(Topic).where(Topic.id == topic_id))
      if row is None:
        return None
      return TopicSnapshot(
        id=row.id,
        title=row.title,
        specialty_name=row.specialty_name,
        parent_grouping_name=row.parent_grouping_name,
        description=row.description,
        existing_full_text=row.full_text_content,
      )

  async def update_topic(self, topic_id: str, fields: dict[str, Any]) -> None:
    if not fields:
      return
    async with self._session_factory() as session:
      result = await session.execute(update(Topic).where(Topic.id == topic_id).values(**fields))
      if not result.rowcount:
        raise LookupError(f"Topic {topic_id} not found.")
      await session.commit()

  async def insert_flashcards(self, topic_id: str, rows: list[dict[str, Any]]) -> int:
    return await self._bulk_insert(Flashcard, topic_id, rows)

  async def insert_questions(self, topic_id: str, rows: list[dict[str, Any]]) -> int:
    return await self._bulk_insert(Question, topic_id, rows)

  async def _bulk_insert(self, model: type[Flashcard] | type[Question], topic_id: str, rows: list[dict[str, Any]]) -> int:
    if not rows:
      return 0
    async with self._session_factory() as session:
      await session.execute(insert(model), [{**row, "topic_id": topic_id} for row in rows])
      await session.commit()
    return len(rows)
