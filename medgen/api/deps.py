"""Shared FastAPI dependencies for services, identity and rate limiting."""

from __future__ import annotations

import hashlib
import logging
from functools import lru_cache

from fastapi import Depends, Request

from medgen.ai.errors import RateLimitExceededError
from medgen.ai.generation import GenerationService
from medgen.ai.orchestrator import PipelineOrchestrator
from medgen.ai.router import ModelRouter, build_router
from medgen.config import Settings, get_settings
from medgen.jobs.queue import QueueManager
from medgen.services.cache import CacheStore
from medgen.services.rate_limiter import InMemoryRateLimitStore, RateLimiter
from medgen.storage.postgres_cache_repo import PostgresCacheRepository
from medgen.storage.postgres_jobs_repo import PostgresJobsRepository
from medgen.storage.postgres_topics_repo import PostgresTopicsRepository
from medgen.storage.usage_repo import PostgresUsageRepository

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_rate_limiter() -> RateLimiter:
  """Process-wide limiter; swap the store for a shared backend across workers."""
  settings = get_settings()
  return RateLimiter(InMemoryRateLimitStore(), limit=settings.rate_limit_max_requests, window_seconds=settings.rate_limit_window_seconds)


@lru_cache(maxsize=1)
def get_model_router() -> ModelRouter:
  return build_router(get_settings())


def get_cache_store(settings: Settings = Depends(get_settings)) -> CacheStore:  # noqa: B008
  return CacheStore(PostgresCacheRepository(), ttl_seconds=settings.cache_ttl_seconds)


def get_generation_service(router: ModelRouter = Depends(get_model_router), cache: CacheStore = Depends(get_cache_store)) -> GenerationService:  # noqa: B008
  return GenerationService(router, cache, PostgresUsageRepository())


def get_queue_manager(settings: Settings = Depends(get_settings), generation: GenerationService = Depends(get_generation_service)) -> QueueManager:  # noqa: B008
  orchestrator = PipelineOrchestrator(generation, PostgresTopicsRepository())
  return QueueManager(
    PostgresJobsRepository(),
    orchestrator,
    max_batch=settings.batch_max_topics,
    max_drain=settings.drain_max_limit,
    concurrency=settings.drain_concurrency,
    processing_timeout_seconds=settings.processing_timeout_seconds,
  )


def resolve_identity(request: Request) -> str:
  """Identify the caller: gateway user header, then bearer token digest, then client address."""
  user_id = (request.headers.get("x-user-id") or "").strip()
  if user_id:
    return f"user:{user_id}"

  authorization = request.headers.get("authorization") or ""
  scheme, _, token = authorization.partition(" ")
  if scheme.lower() == "bearer" and token.strip():
    digest = hashlib.sha256(token.strip().encode("utf-8")).hexdigest()[:16]
    return f"token:{digest}"

  host = request.client.host if request.client else "unknown"
  return f"ip:{host}"


def enforce_rate_limit(request: Request, limiter: RateLimiter = Depends(get_rate_limiter)) -> str:  # noqa: B008
  """Count the request against the caller's window and return the caller identity."""
  identity = resolve_identity(request)
  decision = limiter.allow(identity)
  if not decision.allowed:
    raise RateLimitExceededError(identity=identity, retry_after=decision.retry_after)
  return identity
