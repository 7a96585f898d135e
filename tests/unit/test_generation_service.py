"""Unit tests for cache-first single-mode generation."""

from __future__ import annotations

from dataclasses import replace

import pytest
from conftest import FakeProvider, InMemoryCacheRepository, InMemoryUsageRepository

from medgen.ai.generation import GenerationService
from medgen.ai.modes import OPUS, GenerationMode, ProviderKind
from medgen.ai.pipeline.contracts import GenerationContext

CONTEXT = GenerationContext(specialty="Cardiology", parent_grouping="Heart failure", title="Chronic heart failure")


@pytest.mark.anyio
async def test_second_identical_call_is_served_from_cache(
  generation_service: GenerationService, providers: dict[ProviderKind, FakeProvider], usage_repo: InMemoryUsageRepository
) -> None:
  first = await generation_service.generate(GenerationMode.FULLTEXT, CONTEXT, identity="user:alice")
  second = await generation_service.generate(GenerationMode.FULLTEXT, GenerationContext(title=" Chronic heart failure ", specialty="Cardiology", parent_grouping="Heart failure"))

  assert len(providers[ProviderKind.ANTHROPIC].calls) == 1
  assert not first.metadata.cache_hit
  assert second.metadata.cache_hit
  assert second.metadata.cache_hits == 1
  assert second.payload == first.payload
  assert second.metadata.cost == first.metadata.cost

  (entry,) = usage_repo.entries
  assert entry.identity == "user:alice"
  assert entry.mode == "fulltext"
  assert entry.input_tokens == 1000


@pytest.mark.anyio
async def test_different_model_override_is_a_separate_cache_entry(generation_service: GenerationService, providers: dict[ProviderKind, FakeProvider]) -> None:
  providers[ProviderKind.ANTHROPIC].responses["claude-sonnet-4-20250514"] = {"full_text": "Sonnet text"}

  await generation_service.generate(GenerationMode.FULLTEXT, CONTEXT)
  result = await generation_service.generate(GenerationMode.FULLTEXT, CONTEXT, model_override="sonnet")

  assert not result.metadata.cache_hit
  assert result.payload["full_text"] == "Sonnet text"
  assert [call.model for call in providers[ProviderKind.ANTHROPIC].calls] == [OPUS, "claude-sonnet-4-20250514"]


@pytest.mark.anyio
async def test_unreadable_cached_payload_is_regenerated(
  generation_service: GenerationService, cache_repo: InMemoryCacheRepository, providers: dict[ProviderKind, FakeProvider]
) -> None:
  await generation_service.generate(GenerationMode.FULLTEXT, CONTEXT)
  for key, record in list(cache_repo.entries.items()):
    cache_repo.entries[key] = replace(record, response={"garbage": True})

  result = await generation_service.generate(GenerationMode.FULLTEXT, CONTEXT)
  assert not result.metadata.cache_hit
  assert len(providers[ProviderKind.ANTHROPIC].calls) == 2


@pytest.mark.anyio
async def test_cache_outage_does_not_block_generation(generation_service: GenerationService, cache_repo: InMemoryCacheRepository) -> None:
  cache_repo.fail = True
  result = await generation_service.generate(GenerationMode.FULLTEXT, CONTEXT)
  assert result.payload["full_text"]
