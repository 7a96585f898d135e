"""Create generation pipeline tables.

Revision ID: a1c3e5f7b9d0
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "a1c3e5f7b9d0"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
  """Upgrade schema."""
  op.create_table(
    "generation_jobs",
    sa.Column("id", sa.String(), nullable=False),
    sa.Column("topic_id", sa.String(), nullable=False),
    sa.Column("requested_modes", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("status", sa.String(), server_default="pending", nullable=False),
    sa.Column("priority", sa.Integer(), server_default="0", nullable=False),
    sa.Column("submitted_by", sa.String(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("result", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("error_message", sa.String(length=500), nullable=True),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_generation_jobs_topic_id"), "generation_jobs", ["topic_id"], unique=False)
  op.create_index("ix_generation_jobs_status_priority_created", "generation_jobs", ["status", sa.text("priority DESC"), "created_at"], unique=False)

  op.create_table(
    "ai_generation_cache",
    sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("key", sa.String(length=64), nullable=False),
    sa.Column("mode", sa.String(), nullable=False),
    sa.Column("context", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("response", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("model", sa.String(), nullable=False),
    sa.Column("tokens_used", sa.Integer(), server_default="0", nullable=False),
    sa.Column("cost", sa.Numeric(precision=12, scale=6), server_default="0", nullable=False),
    sa.Column("hits", sa.Integer(), server_default="0", nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("last_accessed_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    sa.PrimaryKeyConstraint("id"),
    sa.UniqueConstraint("key"),
  )
  op.create_index(op.f("ix_ai_generation_cache_mode"), "ai_generation_cache", ["mode"], unique=False)
  op.create_index("ix_ai_generation_cache_expires_at", "ai_generation_cache", ["expires_at"], unique=False)

  op.create_table(
    "ai_usage_log",
    sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("identity", sa.String(), nullable=True),
    sa.Column("mode", sa.String(), nullable=False),
    sa.Column("provider", sa.String(), nullable=False),
    sa.Column("model", sa.String(), nullable=False),
    sa.Column("input_tokens", sa.Integer(), server_default="0", nullable=False),
    sa.Column("output_tokens", sa.Integer(), server_default="0", nullable=False),
    sa.Column("cost", sa.Numeric(precision=12, scale=6), server_default="0", nullable=False),
    sa.Column("topic_id", sa.String(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_ai_usage_log_identity"), "ai_usage_log", ["identity"], unique=False)


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_index(op.f("ix_ai_usage_log_identity"), table_name="ai_usage_log")
  op.drop_table("ai_usage_log")
  op.drop_index("ix_ai_generation_cache_expires_at", table_name="ai_generation_cache")
  op.drop_index(op.f("ix_ai_generation_cache_mode"), table_name="ai_generation_cache")
  op.drop_table("ai_generation_cache")
  op.drop_index("ix_generation_jobs_status_priority_created", table_name="generation_jobs")
  op.drop_index(op.f("ix_generation_jobs_topic_id"), table_name="generation_jobs")
  op.drop_table("generation_jobs")
