"""Durable priority queue of topic generation jobs."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from medgen.ai.errors import GenerationValidationError
from medgen.ai.modes import normalize_modes
from medgen.ai.orchestrator import PipelineOrchestrator
from medgen.jobs.models import JOB_STATUSES, GenerationJobRecord, NewJob, truncate_error
from medgen.storage.jobs_repo import JobsRepository

logger = logging.getLogger(__name__)

RECENT_JOBS_LIMIT = 20


@dataclass(frozen=True)
class DrainResult:
  job_id: str
  topic_id: str
  status: str
  error: str | None = None

  def as_dict(self) -> dict[str, Any]:
    payload: dict[str, Any] = {"job_id": self.job_id, "topic_id": self.topic_id, "status": self.status}
    if self.error is not None:
      payload["error"] = self.error
    return payload


class QueueManager:
  """Enqueue topics, drain pending jobs through the pipeline, and report status."""

  def __init__(
    self,
    repo: JobsRepository,
    orchestrator: PipelineOrchestrator,
    *,
    max_batch: int = 50,
    max_drain: int = 10,
    concurrency: int = 1,
    processing_timeout_seconds: int = 900,
    clock: Callable[[], datetime] | None = None,
  ) -> None:
    self._repo = repo
    self._orchestrator = orchestrator
    self._max_batch = max_batch
    self._max_drain = max_drain
    self._concurrency = max(1, concurrency)
    self._processing_timeout = timedelta(seconds=processing_timeout_seconds)
    self._clock = clock or (lambda: datetime.now(UTC))

  async def enqueue(self, topic_ids: Sequence[str], modes: Sequence[str] | None = None, *, submitted_by: str | None = None, priority_base: int = 0) -> list[GenerationJobRecord]:
    """Create one pending job per topic; earlier topics get higher priority."""
    cleaned = [str(topic_id).strip() for topic_id in topic_ids or [] if str(topic_id).strip()]
    if not cleaned:
      raise GenerationValidationError("topic_ids must contain at least one topic id.", field="topic_ids")
    if len(cleaned) > self._max_batch:
      raise GenerationValidationError(f"At most {self._max_batch} topics per batch.", field="topic_ids")

    # Validate before anything is written so bad modes never enqueue.
    requested = [mode.value for mode in normalize_modes(list(modes) if modes else None)]

    count = len(cleaned)
    jobs = [NewJob(topic_id=topic_id, requested_modes=requested, priority=priority_base + count - index, submitted_by=submitted_by) for index, topic_id in enumerate(cleaned)]
    records = await self._repo.create_jobs(jobs)
    logger.info("Enqueued %s generation jobs (modes=%s, submitted_by=%s)", len(records), ",".join(requested), submitted_by)
    return records

  async def drain(self, limit: int | None = None) -> list[DrainResult]:
    """Claim up to ``limit`` pending jobs and run each through the pipeline."""
    effective = self._max_drain if limit is None else max(1, min(int(limit), self._max_drain))
    now = self._clock()

    reclaimed = await self._repo.reclaim_stale(older_than=now - self._processing_timeout)
    if reclaimed:
      logger.warning("Reclaimed %s generation jobs stuck in processing.", reclaimed)

    claimed = await self._repo.claim_pending(effective, now=now)
    if not claimed:
      return []

    semaphore = asyncio.Semaphore(self._concurrency)

    async def _guarded(job: GenerationJobRecord) -> DrainResult:
      async with semaphore:
        return await self._process(job)

    # gather preserves claim order in its results.
    return list(await asyncio.gather(*(_guarded(job) for job in claimed)))

  async def _process(self, job: GenerationJobRecord) -> DrainResult:
    result_map: dict[str, Any] | None = None
    try:
      outcome = await self._orchestrator.run(job.topic_id, job.requested_modes, identity=job.submitted_by)
      result_map = outcome.result_map()
      status = outcome.status
      error = outcome.error
    except Exception as exc:  # noqa: BLE001
      # One job's failure never reaches its siblings.
      logger.error("Generation job %s for topic %s failed.", job.id, job.topic_id, exc_info=True)
      status = "failed"
      error = str(exc) or type(exc).__name__

    error = truncate_error(error)
    try:
      await self._repo.finish_job(job.id, status=status, result=result_map, error_message=error, now=self._clock())
    except Exception:  # noqa: BLE001
      # The row stays in processing and is reclaimed after the timeout.
      logger.error("Failed to record outcome for generation job %s.", job.id, exc_info=True)

    logger.info("Generation job %s for topic %s finished with status %s", job.id, job.topic_id, status)
    return DrainResult(job_id=job.id, topic_id=job.topic_id, status=status, error=error)

  async def status(self) -> dict[str, Any]:
    counts = {status: 0 for status in JOB_STATUSES}
    counts.update(await self._repo.count_by_status())
    recent = await self._repo.list_recent(RECENT_JOBS_LIMIT)
    return {"counts": counts, "recent": [job.summary() for job in recent]}
