"""Shared test doubles and fixtures."""

from __future__ import annotations

import json
import os
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

# Required settings must exist before medgen.main is imported anywhere.
os.environ.setdefault("MEDGEN_ALLOWED_ORIGINS", "http://localhost:5173")
os.environ.pop("MEDGEN_PG_DSN", None)
os.environ.pop("DATABASE_URL", None)

import pytest  # noqa: E402

from medgen.ai.errors import ProviderError  # noqa: E402
from medgen.ai.generation import GenerationService  # noqa: E402
from medgen.ai.modes import GEMINI_FLASH, GPT4O, HAIKU, OPUS, SONNET, ProviderKind  # noqa: E402
from medgen.ai.orchestrator import PipelineOrchestrator  # noqa: E402
from medgen.ai.pipeline.contracts import TopicSnapshot  # noqa: E402
from medgen.ai.providers.base import ChatProvider, CompletionRequest, ProviderCompletion  # noqa: E402
from medgen.ai.router import ModelRouter  # noqa: E402
from medgen.jobs.models import GenerationJobRecord, JobStatus, NewJob  # noqa: E402
from medgen.services.cache import CacheStore  # noqa: E402
from medgen.storage.cache_repo import CacheModeStats, CacheRecord  # noqa: E402
from medgen.storage.usage_repo import UsageEntry  # noqa: E402

FULL_TEXT = "# Heart failure\n\n## 1. Introduction and definition\nHeart failure is a clinical syndrome."

DEFAULT_RESPONSES: dict[str, dict[str, Any]] = {
  OPUS: {"full_text": FULL_TEXT, "deep_dive": "# Deep Dive\n\nReceptor level detail.", "confidence": 0.9, "sources": ["ESC Guidelines 2023"], "warnings": []},
  GEMINI_FLASH: {"high_yield": "# High-Yield\n\n**CRITICAL:** NT-proBNP rules out HF.", "key_points": ["NT-proBNP"], "confidence": 0.9},
  HAIKU: {"flashcards": [{"question": f"Question {index}?", "answer": f"Answer {index}."} for index in range(1, 6)], "confidence": 0.8},
  SONNET: {
    "questions": [{"question_text": "First-line therapy?", "options": {"A": "ACEi", "B": "Digoxin"}, "correct_answer": "A", "explanation": "Mortality benefit.", "difficulty": 3}],
    "confidence": 0.85,
  },
  GPT4O: {"approved": True, "confidence": 0.9, "safety_score": 92, "overall_score": 88, "issues": [], "strengths": ["clear"], "missing_sections": []},
}


class FrozenClock:
  """Manually advanced clock usable as ``clock=`` for services."""

  def __init__(self, start: datetime | None = None) -> None:
    self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

  def __call__(self) -> datetime:
    return self.now

  def advance(self, seconds: float) -> None:
    self.now = self.now + timedelta(seconds=seconds)


class FakeProvider(ChatProvider):
  """Provider double returning scripted JSON keyed by model."""

  def __init__(self, name: str, *, configured: bool = True, responses: dict[str, Any] | None = None, input_tokens: int = 1000, output_tokens: int = 500) -> None:
    self.name = name
    self._configured = configured
    self.responses = dict(DEFAULT_RESPONSES)
    self.responses.update(responses or {})
    self.input_tokens = input_tokens
    self.output_tokens = output_tokens
    self.calls: list[CompletionRequest] = []
    self.fail_with: Exception | None = None

  @property
  def is_configured(self) -> bool:
    return self._configured

  async def complete(self, request: CompletionRequest) -> ProviderCompletion:
    self.calls.append(request)
    if self.fail_with is not None:
      raise self.fail_with
    scripted = self.responses[request.model]
    text = scripted if isinstance(scripted, str) else json.dumps(scripted)
    return ProviderCompletion(text=text, input_tokens=self.input_tokens, output_tokens=self.output_tokens, provider=self.name, model=request.model)


class InMemoryCacheRepository:
  def __init__(self) -> None:
    self.entries: dict[str, CacheRecord] = {}
    self.fail = False

  def _check(self) -> None:
    if self.fail:
      raise ConnectionError("cache store unreachable")

  async def get(self, key: str) -> CacheRecord | None:
    self._check()
    return self.entries.get(key)

  async def delete(self, key: str) -> None:
    self._check()
    self.entries.pop(key, None)

  async def touch(self, key: str, *, now: datetime) -> int:
    self._check()
    record = self.entries[key]
    updated = replace(record, hits=record.hits + 1, last_accessed_at=now)
    self.entries[key] = updated
    return updated.hits

  async def upsert(self, record: CacheRecord) -> None:
    self._check()
    existing = self.entries.get(record.key)
    if existing is not None:
      record = replace(record, hits=existing.hits)
    self.entries[record.key] = record

  async def stats(self) -> list[CacheModeStats]:
    grouped: dict[str, list[CacheRecord]] = {}
    for record in self.entries.values():
      grouped.setdefault(record.mode, []).append(record)
    return [
      CacheModeStats(
        mode=mode,
        entries=len(records),
        hits=sum(record.hits for record in records),
        cost=sum((record.cost for record in records), Decimal("0")),
        saved=sum((record.cost * record.hits for record in records), Decimal("0")),
      )
      for mode, records in sorted(grouped.items())
    ]

  async def clear(self, mode: str | None = None) -> int:
    doomed = [key for key, record in self.entries.items() if mode is None or record.mode == mode]
    for key in doomed:
      del self.entries[key]
    return len(doomed)

  async def purge_expired(self, *, now: datetime) -> int:
    doomed = [key for key, record in self.entries.items() if record.expires_at < now]
    for key in doomed:
      del self.entries[key]
    return len(doomed)


class InMemoryTopicsRepository:
  def __init__(self) -> None:
    self.topics: dict[str, dict[str, Any]] = {}
    self.flashcards: list[dict[str, Any]] = []
    self.questions: list[dict[str, Any]] = []
    self.fail_stores: set[str] = set()

  def add_topic(self, topic_id: str, title: str, *, full_text: str | None = None, specialty: str = "Cardiology", grouping: str = "Heart failure") -> None:
    self.topics[topic_id] = {"id": topic_id, "title": title, "specialty_name": specialty, "parent_grouping_name": grouping, "description": None, "full_text_content": full_text}

  async def get_topic(self, topic_id: str) -> TopicSnapshot | None:
    row = self.topics.get(topic_id)
    if row is None:
      return None
    return TopicSnapshot(
      id=row["id"], title=row["title"], specialty_name=row["specialty_name"], parent_grouping_name=row["parent_grouping_name"], description=row["description"], existing_full_text=row["full_text_content"]
    )

  async def update_topic(self, topic_id: str, fields: dict[str, Any]) -> None:
    if "topics" in self.fail_stores:
      raise ConnectionError("topics table unavailable")
    self.topics[topic_id].update(fields)

  async def insert_flashcards(self, topic_id: str, rows: list[dict[str, Any]]) -> int:
    if "flashcards" in self.fail_stores:
      raise ConnectionError("flashcards insert rejected")
    self.flashcards.extend({**row, "topic_id": topic_id} for row in rows)
    return len(rows)

  async def insert_questions(self, topic_id: str, rows: list[dict[str, Any]]) -> int:
    if "questions" in self.fail_stores:
      raise ConnectionError("questions insert rejected")
    self.questions.extend({**row, "topic_id": topic_id} for row in rows)
    return len(rows)


class InMemoryUsageRepository:
  def __init__(self) -> None:
    self.entries: list[UsageEntry] = []

  async def record(self, entry: UsageEntry) -> None:
    self.entries.append(entry)


class InMemoryJobsRepository:
  """Single-process stand-in for the jobs table."""

  def __init__(self, clock: FrozenClock) -> None:
    self._clock = clock
    self.jobs: dict[str, GenerationJobRecord] = {}
    self._sequence = 0

  async def create_jobs(self, jobs: list[NewJob]) -> list[GenerationJobRecord]:
    created: list[GenerationJobRecord] = []
    for job in jobs:
      self._sequence += 1
      # Distinct created_at values keep tie-breaking deterministic.
      record = GenerationJobRecord(
        id=f"job-{self._sequence}",
        topic_id=job.topic_id,
        requested_modes=list(job.requested_modes),
        status="pending",
        priority=job.priority,
        created_at=self._clock() + timedelta(microseconds=self._sequence),
        submitted_by=job.submitted_by,
      )
      self.jobs[record.id] = record
      created.append(record)
    return created

  async def claim_pending(self, limit: int, *, now: datetime) -> list[GenerationJobRecord]:
    pending = sorted((job for job in self.jobs.values() if job.status == "pending"), key=lambda job: (-job.priority, job.created_at))
    claimed = []
    for job in pending[:limit]:
      job.status = "processing"
      job.started_at = now
      claimed.append(replace(job))
    return claimed

  async def finish_job(self, job_id: str, *, status: JobStatus, result: dict[str, Any] | None, error_message: str | None, now: datetime) -> None:
    job = self.jobs[job_id]
    job.status = status
    job.result = result
    job.error_message = error_message
    job.completed_at = now

  async def reclaim_stale(self, *, older_than: datetime) -> int:
    reclaimed = 0
    for job in self.jobs.values():
      if job.status == "processing" and job.started_at is not None and job.started_at < older_than:
        job.status = "pending"
        job.started_at = None
        reclaimed += 1
    return reclaimed

  async def count_by_status(self) -> dict[str, int]:
    counts: dict[str, int] = {}
    for job in self.jobs.values():
      counts[job.status] = counts.get(job.status, 0) + 1
    return counts

  async def list_recent(self, limit: int = 20) -> list[GenerationJobRecord]:
    return sorted(self.jobs.values(), key=lambda job: job.created_at, reverse=True)[:limit]


@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
def clock() -> FrozenClock:
  return FrozenClock()


@pytest.fixture
def providers() -> dict[ProviderKind, FakeProvider]:
  return {ProviderKind.ANTHROPIC: FakeProvider("anthropic"), ProviderKind.GEMINI: FakeProvider("gemini"), ProviderKind.OPENAI: FakeProvider("openai")}


@pytest.fixture
def model_router(providers: dict[ProviderKind, FakeProvider], clock: FrozenClock) -> ModelRouter:
  return ModelRouter(providers, default_provider=ProviderKind.ANTHROPIC, clock=clock)


@pytest.fixture
def cache_repo() -> InMemoryCacheRepository:
  return InMemoryCacheRepository()


@pytest.fixture
def cache_store(cache_repo: InMemoryCacheRepository, clock: FrozenClock) -> CacheStore:
  return CacheStore(cache_repo, ttl_seconds=7 * 24 * 3600, clock=clock)


@pytest.fixture
def usage_repo() -> InMemoryUsageRepository:
  return InMemoryUsageRepository()


@pytest.fixture
def generation_service(model_router: ModelRouter, cache_store: CacheStore, usage_repo: InMemoryUsageRepository) -> GenerationService:
  return GenerationService(model_router, cache_store, usage_repo)


@pytest.fixture
def topics_repo() -> InMemoryTopicsRepository:
  repo = InMemoryTopicsRepository()
  repo.add_topic("T1", "Chronic heart failure")
  return repo


@pytest.fixture
def orchestrator(generation_service: GenerationService, topics_repo: InMemoryTopicsRepository, clock: FrozenClock) -> PipelineOrchestrator:
  return PipelineOrchestrator(generation_service, topics_repo, clock=clock)


@pytest.fixture
def jobs_repo(clock: FrozenClock) -> InMemoryJobsRepository:
  return InMemoryJobsRepository(clock)


def provider_error(message: str = "upstream returned 503") -> ProviderError:
  return ProviderError(message, provider="anthropic", status_code=503)
