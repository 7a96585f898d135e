"""Storage interface for the topic, flashcard and question collaborator tables."""

from __future__ import annotations

from typing import Any, Protocol

from medgen.ai.pipeline.contracts import TopicSnapshot


class TopicsRepository(Protocol):
  async def get_topic(self, topic_id: str) -> TopicSnapshot | None:
    """Read the fields the pipeline needs from one topic."""

  async def update_topic(self, topic_id: str, fields: dict[str, Any]) -> None:
    """Write generated fields back to a topic."""

  async def insert_flashcards(self, topic_id: str, rows: list[dict[str, Any]]) -> int:
    """Bulk insert flashcard rows; return the number inserted."""

  async def insert_questions(self, topic_id: str, rows: list[dict[str, Any]]) -> int:
    """Bulk insert question rows; return the number inserted."""
