"""Postgres-backed repository for generation jobs using SQLAlchemy."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from medgen.core.database import require_session_factory
from medgen.jobs.models import GenerationJobRecord, JobStatus, NewJob, truncate_error
from medgen.schema.generation import GenerationJob
from medgen.storage.jobs_repo import JobsRepository


class PostgresJobsRepository(JobsRepository):
  """Persist generation jobs to Postgres."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory or require_session_factory()

  async def create_jobs(self, jobs: list[NewJob]) -> list[GenerationJobRecord]:
    async with self._session_factory() as session:
      rows = [GenerationJob(topic_id=job.topic_id, requested_modes=list(job.requested_modes), status="pending", priority=job.priority, submitted_by=job.submitted_by) for job in jobs]
      session.add_all(rows)
      await session.commit()
      for row in rows:
        await session.refresh(row)
      return [self._model_to_record(row) for row in rows]

  async def claim_pending(self, limit: int, *, now: datetime) -> list[GenerationJobRecord]:
    async with self._session_factory() as session:
      # Row locks with SKIP LOCKED keep concurrent drains from claiming the same job.
      candidates = select(GenerationJob.id).where(GenerationJob.status == "pending").order_by(GenerationJob.priority.desc(), GenerationJob.created_at.asc()).limit(limit).with_for_update(skip_locked=True)
      stmt = update(GenerationJob).where(GenerationJob.id.in_(candidates.scalar_subquery())).values(status="processing", started_at=now).returning(GenerationJob)
      result = await session.execute(stmt, execution_options={"synchronize_session": False})
      rows = list(result.scalars().all())
      await session.commit()

    # RETURNING order is unspecified, so restore queue order here.
    rows.sort(key=lambda row: (-row.priority, row.created_at))
    return [self._model_to_record(row) for row in rows]

  async def finish_job(self, job_id: str, *, status: JobStatus, result: dict[str, Any] | None, error_message: str | None, now: datetime) -> None:
    async with self._session_factory() as session:
      stmt = update(GenerationJob).where(GenerationJob.id == job_id).values(status=status, result=result, error_message=truncate_error(error_message), completed_at=now)
      await session.execute(stmt)
      await session.commit()

  async def reclaim_stale(self, *, older_than: datetime) -> int:
    async with self._session_factory() as session:
      stmt = update(GenerationJob).where(GenerationJob.status == "processing", GenerationJob.started_at < older_than).values(status="pending", started_at=None)
      result = await session.execute(stmt)
      await session.commit()
      return int(result.rowcount or 0)

  async def count_by_status(self) -> dict[str, int]:
    async with self._session_factory() as session:
      result = await session.execute(select(GenerationJob.status, func.count()).group_by(GenerationJob.status))
      return {str(status): int(count) for status, count in result.all()}

  async def list_recent(self, limit: int = 20) -> list[GenerationJobRecord]:
    async with self._session_factory() as session:
      result = await session.execute(select(GenerationJob).order_by(GenerationJob.created_at.desc()).limit(limit))
      return [self._model_to_record(row) for row in result.scalars().all()]

  def _model_to_record(self, row: GenerationJob) -> GenerationJobRecord:
    return GenerationJobRecord(
      id=row.id,
      topic_id=row.topic_id,
      requested_modes=list(row.requested_modes or []),
      status=row.status,  # type: ignore[arg-type]
      priority=int(row.priority),
      created_at=row.created_at,
      submitted_by=row.submitted_by,
      started_at=row.started_at,
      completed_at=row.completed_at,
      result=row.result,
      error_message=row.error_message,
    )
