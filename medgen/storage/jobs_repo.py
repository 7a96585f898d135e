"""Storage interface for generation jobs."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from medgen.jobs.models import GenerationJobRecord, JobStatus, NewJob


class JobsRepository(Protocol):
  """Repository contract for job persistence."""

  async def create_jobs(self, jobs: list[NewJob]) -> list[GenerationJobRecord]:
    """Insert pending jobs and return them in submission order."""

  async def claim_pending(self, limit: int, *, now: datetime) -> list[GenerationJobRecord]:
    """Atomically move up to ``limit`` pending jobs to processing.

    Ordered by priority descending then created_at ascending. A job is never
    returned to two concurrent callers.
    """

  async def finish_job(self, job_id: str, *, status: JobStatus, result: dict[str, Any] | None, error_message: str | None, now: datetime) -> None:
    """Record a terminal status and the per-mode result map."""

  async def reclaim_stale(self, *, older_than: datetime) -> int:
    """Return processing jobs started before ``older_than`` to pending."""

  async def count_by_status(self) -> dict[str, int]:
    """Count jobs grouped by status."""

  async def list_recent(self, limit: int = 20) -> list[GenerationJobRecord]:
    """Return the most recently created jobs."""
