"""Single-mode generation with cache-first lookup and usage accounting."""

from __future__ import annotations

import logging
from decimal import Decimal

from pydantic import ValidationError

from medgen.ai.modes import GenerationMode
from medgen.ai.pipeline.contracts import GenerationContext, GenerationResult
from medgen.ai.router import ModelRouter
from medgen.services.cache import CacheStore
from medgen.storage.usage_repo import UsageEntry, UsageRepository

logger = logging.getLogger(__name__)


class GenerationService:
  """Serve one mode from the cache, or call the router and memoize the result."""

  def __init__(self, router: ModelRouter, cache: CacheStore, usage_repo: UsageRepository | None = None) -> None:
    self._router = router
    self._cache = cache
    self._usage_repo = usage_repo

  async def generate(self, mode: GenerationMode, context: GenerationContext, *, model_override: str | None = None, identity: str | None = None, topic_id: str | None = None) -> GenerationResult:
    route = self._router.resolve_route(mode, model_override)
    cache_context = context.normalized()

    hit = await self._cache.lookup(mode.value, route.model, cache_context)
    if hit is not None:
      try:
        cached = GenerationResult.model_validate(hit.response)
      except ValidationError:
        logger.warning("Cached response for mode %s is unreadable; regenerating.", mode.value, exc_info=True)
      else:
        return cached.as_cache_hit(age_seconds=hit.age_seconds, hits=hit.hits)

    result = await self._router.generate(mode, context, route=route)
    metadata = result.metadata
    cost = Decimal(str(metadata.total_cost))
    await self._cache.store(mode.value, route.model, cache_context, result.cache_response(), model=metadata.model, tokens_used=metadata.tokens_used, cost=cost)
    await self._record_usage(mode, result, cost=cost, identity=identity, topic_id=topic_id)
    return result

  async def _record_usage(self, mode: GenerationMode, result: GenerationResult, *, cost: Decimal, identity: str | None, topic_id: str | None) -> None:
    if self._usage_repo is None:
      return
    metadata = result.metadata
    entry = UsageEntry(
      identity=identity,
      mode=mode.value,
      provider=metadata.provider,
      model=metadata.model,
      input_tokens=metadata.input_tokens,
      output_tokens=metadata.output_tokens,
      cost=cost,
      topic_id=topic_id,
    )
    try:
      await self._usage_repo.record(entry)
    except Exception:  # noqa: BLE001
      logger.warning("Failed to record usage for mode %s.", mode.value, exc_info=True)
