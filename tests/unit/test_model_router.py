"""Unit tests for provider routing and result normalization."""

from __future__ import annotations

import pytest
from conftest import FULL_TEXT, FakeProvider

from medgen.ai.errors import MissingCredentialError
from medgen.ai.modes import GEMINI_FLASH, GPT4O, HAIKU, OPUS, SONNET, GenerationMode, ProviderKind
from medgen.ai.pipeline.contracts import GenerationContext
from medgen.ai.router import ModelRouter

CONTEXT = GenerationContext(specialty="Cardiology", parent_grouping="Heart failure", title="Chronic heart failure")


def test_routes_follow_the_mode_table(model_router: ModelRouter) -> None:
  assert model_router.resolve_route(GenerationMode.FULLTEXT).model == OPUS
  assert model_router.resolve_route(GenerationMode.HIGH_YIELD).provider is ProviderKind.GEMINI
  assert model_router.resolve_route(GenerationMode.FLASHCARDS).model == HAIKU
  assert model_router.resolve_route(GenerationMode.MCQ).model == SONNET
  assert model_router.resolve_route(GenerationMode.REVIEW).model == GPT4O


def test_model_override_wins(model_router: ModelRouter) -> None:
  route = model_router.resolve_route(GenerationMode.FULLTEXT, "gemini_flash")
  assert (route.provider, route.model, route.fallback) == (ProviderKind.GEMINI, GEMINI_FLASH, False)


def test_missing_credential_falls_back_to_default_provider() -> None:
  providers = {ProviderKind.ANTHROPIC: FakeProvider("anthropic"), ProviderKind.GEMINI: FakeProvider("gemini", configured=False), ProviderKind.OPENAI: FakeProvider("openai")}
  router = ModelRouter(providers, default_provider=ProviderKind.ANTHROPIC)

  route = router.resolve_route(GenerationMode.HIGH_YIELD)
  assert (route.provider, route.model, route.fallback) == (ProviderKind.ANTHROPIC, SONNET, True)


def test_missing_credential_without_fallback_raises() -> None:
  providers = {ProviderKind.ANTHROPIC: FakeProvider("anthropic", configured=False), ProviderKind.OPENAI: FakeProvider("openai", configured=False)}
  router = ModelRouter(providers, default_provider=ProviderKind.ANTHROPIC)

  with pytest.raises(MissingCredentialError):
    router.resolve_route(GenerationMode.REVIEW)
  with pytest.raises(MissingCredentialError):
    router.resolve_route(GenerationMode.FULLTEXT)


@pytest.mark.anyio
async def test_generate_normalizes_payload_and_prices_tokens(model_router: ModelRouter, providers: dict[ProviderKind, FakeProvider]) -> None:
  result = await model_router.generate(GenerationMode.FULLTEXT, CONTEXT)

  assert result.structured
  assert result.payload["full_text"] == FULL_TEXT
  assert result.confidence == 0.9
  assert result.sources == ["ESC Guidelines 2023"]
  assert result.metadata.provider == "anthropic"
  assert result.metadata.tokens_used == 1500
  # 1000 * $5/M + 500 * $25/M
  assert result.metadata.cost == {"input_cost": 0.005, "output_cost": 0.0125, "total_cost": 0.0175}
  assert not result.metadata.cache_hit

  (request,) = providers[ProviderKind.ANTHROPIC].calls
  assert request.model == OPUS
  assert request.max_tokens == 8192
  assert "Cardiology" in request.system_prompt
  assert "{{" not in request.user_prompt


@pytest.mark.anyio
async def test_generate_truncates_forwarded_full_text(model_router: ModelRouter, providers: dict[ProviderKind, FakeProvider]) -> None:
  context = CONTEXT.with_full_text("y" * 20000)
  await model_router.generate(GenerationMode.HIGH_YIELD, context)

  (request,) = providers[ProviderKind.GEMINI].calls
  assert "y" * 15000 in request.user_prompt
  assert "y" * 15001 not in request.user_prompt


@pytest.mark.anyio
async def test_unparseable_output_becomes_raw_text_fallback() -> None:
  providers = {ProviderKind.ANTHROPIC: FakeProvider("anthropic", responses={OPUS: "Plain prose without JSON."})}
  router = ModelRouter(providers, default_provider=ProviderKind.ANTHROPIC)

  result = await router.generate(GenerationMode.FULLTEXT, CONTEXT)
  assert not result.structured
  assert result.payload == {"text": "Plain prose without JSON."}
  assert result.confidence is None


@pytest.mark.anyio
async def test_confidence_is_clamped() -> None:
  providers = {ProviderKind.ANTHROPIC: FakeProvider("anthropic", responses={OPUS: {"full_text": "x", "confidence": 7}})}
  router = ModelRouter(providers, default_provider=ProviderKind.ANTHROPIC)

  result = await router.generate(GenerationMode.FULLTEXT, CONTEXT)
  assert result.confidence == 1.0


@pytest.mark.anyio
async def test_generate_marks_fallback_when_preferred_provider_is_unconfigured() -> None:
  gemini = FakeProvider("gemini", configured=False)
  anthropic = FakeProvider("anthropic")
  router = ModelRouter({ProviderKind.ANTHROPIC: anthropic, ProviderKind.GEMINI: gemini}, default_provider=ProviderKind.ANTHROPIC)

  result = await router.generate(GenerationMode.HIGH_YIELD, CONTEXT.with_full_text(FULL_TEXT))

  assert result.metadata.fallback is True
  assert (result.metadata.provider, result.metadata.model) == ("anthropic", SONNET)
  assert [request.model for request in anthropic.calls] == [SONNET]
  assert gemini.calls == []
