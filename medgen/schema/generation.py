from __future__ import annotations

import datetime
import uuid
from decimal import Decimal

from sqlalchemy import DateTime, Index, Integer, Numeric, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from medgen.core.database import Base


class GenerationJob(Base):
  __tablename__ = "generation_jobs"

  id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
  topic_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  requested_modes: Mapped[list] = mapped_column(JSONB, nullable=False)
  status: Mapped[str] = mapped_column(String, nullable=False, server_default="pending")
  priority: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
  submitted_by: Mapped[str | None] = mapped_column(String, nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  started_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  completed_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  result: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  error_message: Mapped[str | None] = mapped_column(String(500), nullable=True)


Index("ix_generation_jobs_status_priority_created", GenerationJob.status, GenerationJob.priority.desc(), GenerationJob.created_at)


class CacheEntry(Base):
  __tablename__ = "ai_generation_cache"
  __table_args__ = (Index("ix_ai_generation_cache_expires_at", "expires_at"),)

  id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
  key: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
  mode: Mapped[str] = mapped_column(String, nullable=False, index=True)
  context: Mapped[dict] = mapped_column(JSONB, nullable=False)
  response: Mapped[dict] = mapped_column(JSONB, nullable=False)
  model: Mapped[str] = mapped_column(String, nullable=False)
  tokens_used: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
  cost: Mapped[Decimal] = mapped_column(Numeric(12, 6), nullable=False, server_default="0")
  hits: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  last_accessed_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  expires_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class UsageLog(Base):
  """One row per real provider call; cache hits are not logged."""

  __tablename__ = "ai_usage_log"

  id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
  identity: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
  mode: Mapped[str] = mapped_column(String, nullable=False)
  provider: Mapped[str] = mapped_column(String, nullable=False)
  model: Mapped[str] = mapped_column(String, nullable=False)
  input_tokens: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
  output_tokens: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
  cost: Mapped[Decimal] = mapped_column(Numeric(12, 6), nullable=False, server_default="0")
  topic_id: Mapped[str | None] = mapped_column(String, nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
