"""Collaborator tables the pipeline reads from and writes to.

Only the columns the pipeline touches are mapped; the rest of the study platform
owns these tables.
"""

from __future__ import annotations

import datetime
import uuid
from decimal import Decimal

from sqlalchemy import DateTime, Float, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from medgen.core.database import Base


class Topic(Base):
  __tablename__ = "topics"

  id: Mapped[str] = mapped_column(String, primary_key=True)
  title: Mapped[str] = mapped_column(String(300), nullable=False)
  description: Mapped[str | None] = mapped_column(Text, nullable=True)
  specialty_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
  parent_grouping_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
  full_text_content: Mapped[str | None] = mapped_column(Text, nullable=True)
  bullet_points_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
  deep_dive_content: Mapped[str | None] = mapped_column(Text, nullable=True)
  ai_review: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  ai_model: Mapped[str | None] = mapped_column(String, nullable=True)
  ai_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
  ai_cost: Mapped[Decimal | None] = mapped_column(Numeric(12, 6), nullable=True)
  ai_generated_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  sources: Mapped[list | None] = mapped_column(JSONB, nullable=True)
  warnings: Mapped[list | None] = mapped_column(JSONB, nullable=True)
  status: Mapped[str | None] = mapped_column(String, nullable=True)
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())


class Flashcard(Base):
  __tablename__ = "flashcards"

  id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
  topic_id: Mapped[str] = mapped_column(String, ForeignKey("topics.id", ondelete="CASCADE"), nullable=False, index=True)
  question: Mapped[str] = mapped_column(Text, nullable=False)
  answer: Mapped[str] = mapped_column(Text, nullable=False)
  difficulty: Mapped[int] = mapped_column(Integer, nullable=False, server_default="2")
  tags: Mapped[list] = mapped_column(JSONB, nullable=False, server_default="[]")
  ai_generated: Mapped[bool] = mapped_column(nullable=False, server_default="true")
  ai_model: Mapped[str | None] = mapped_column(String, nullable=True)
  ai_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Question(Base):
  __tablename__ = "questions"

  id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
  topic_id: Mapped[str] = mapped_column(String, ForeignKey("topics.id", ondelete="CASCADE"), nullable=False, index=True)
  question_text: Mapped[str] = mapped_column(Text, nullable=False)
  question_type: Mapped[str] = mapped_column(String, nullable=False, server_default="multiple_choice")
  # JSON string of {"answer": ..., "options": {...}}.
  correct_answer: Mapped[str] = mapped_column(Text, nullable=False)
  explanation: Mapped[str | None] = mapped_column(Text, nullable=True)
  difficulty: Mapped[int] = mapped_column(Integer, nullable=False, server_default="2")
  tags: Mapped[list] = mapped_column(JSONB, nullable=False, server_default="[]")
  ai_generated: Mapped[bool] = mapped_column(nullable=False, server_default="true")
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
