"""Mode to provider routing and canonical result normalization."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from medgen.ai.errors import MissingCredentialError
from medgen.ai.json_parser import extract_payload
from medgen.ai.modes import DEFAULT_PROVIDER_MODELS, GenerationMode, ProviderKind, get_mode_config, resolve_model_alias
from medgen.ai.pipeline.contracts import GenerationContext, GenerationMetadata, GenerationResult
from medgen.ai.prompts import build_prompt_values, fill_template
from medgen.ai.providers.anthropic import AnthropicProvider
from medgen.ai.providers.base import ChatProvider, CompletionRequest
from medgen.ai.providers.gemini import GeminiProvider
from medgen.ai.providers.openai import OpenAIProvider
from medgen.ai.utils.cost import cost_for
from medgen.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedRoute:
  provider: ProviderKind
  model: str
  fallback: bool = False


class ModelRouter:
  """Choose a provider per mode, build prompts, call it and normalize the response."""

  def __init__(self, providers: Mapping[ProviderKind, ChatProvider], *, default_provider: ProviderKind, clock: Callable[[], datetime] | None = None) -> None:
    self._providers = dict(providers)
    self._default_provider = default_provider
    self._clock = clock or (lambda: datetime.now(UTC))

  def _configured(self, kind: ProviderKind) -> bool:
    provider = self._providers.get(kind)
    return provider is not None and provider.is_configured

  def resolve_route(self, mode: GenerationMode, model_override: str | None = None) -> ResolvedRoute:
    """Return the provider/model for a mode, falling back when the credential is absent."""
    override = resolve_model_alias(model_override)
    if override is not None:
      preferred, model = override
    else:
      config = get_mode_config(mode)
      preferred, model = config.provider, config.model

    if self._configured(preferred):
      return ResolvedRoute(provider=preferred, model=model)

    # Preferred credential is missing; try the default provider before giving up.
    if preferred != self._default_provider and self._configured(self._default_provider):
      fallback_model = DEFAULT_PROVIDER_MODELS[self._default_provider]
      logger.warning("Provider %s not configured for mode %s; falling back to %s/%s", preferred.value, mode.value, self._default_provider.value, fallback_model)
      return ResolvedRoute(provider=self._default_provider, model=fallback_model, fallback=True)

    raise MissingCredentialError(f"No credential configured for {preferred.value} or default provider {self._default_provider.value}.", provider=preferred.value)

  def build_prompts(self, mode: GenerationMode, context: GenerationContext) -> tuple[str, str]:
    config = get_mode_config(mode)
    values = build_prompt_values(context.normalized(), fulltext_char_limit=config.fulltext_char_limit)
    return fill_template(config.system_template, values), fill_template(config.user_template, values)

  async def generate(self, mode: GenerationMode, context: GenerationContext, *, model_override: str | None = None, route: ResolvedRoute | None = None) -> GenerationResult:
    """Run one provider call for a mode and return the canonical result."""
    route = route or self.resolve_route(mode, model_override)
    config = get_mode_config(mode)
    system_prompt, user_prompt = self.build_prompts(mode, context)

    provider = self._providers[route.provider]
    completion = await provider.complete(
      CompletionRequest(system_prompt=system_prompt, user_prompt=user_prompt, model=route.model, max_tokens=config.max_tokens, temperature=config.temperature)
    )

    parsed = extract_payload(completion.text)
    if not parsed.structured:
      logger.warning("Mode %s returned unstructured output from %s/%s; using raw-text fallback.", mode.value, route.provider.value, route.model)

    # Cost is always recomputed from token counts with our own price table.
    cost = cost_for(route.provider.value, route.model, completion.input_tokens, completion.output_tokens)
    metadata = GenerationMetadata(
      provider=route.provider.value,
      model=route.model,
      input_tokens=completion.input_tokens,
      output_tokens=completion.output_tokens,
      cost=cost.as_dict(),
      generated_at=self._clock(),
      fallback=route.fallback,
    )
    return GenerationResult(
      mode=mode,
      payload=parsed.data,
      structured=parsed.structured,
      confidence=_confidence(parsed.data),
      sources=_string_list(parsed.data.get("sources")),
      warnings=_string_list(parsed.data.get("warnings")),
      metadata=metadata,
    )


def _confidence(payload: dict[str, Any]) -> float | None:
  value = payload.get("confidence")
  if isinstance(value, bool) or not isinstance(value, (int, float)):
    return None
  return max(0.0, min(1.0, float(value)))


def _string_list(value: Any) -> list[str]:
  if not isinstance(value, list):
    return []
  return [str(item) for item in value if item is not None]


def build_router(settings: Settings) -> ModelRouter:
  """Construct the router with one adapter per supported provider."""
  timeout = settings.provider_timeout_seconds
  providers: dict[ProviderKind, ChatProvider] = {
    ProviderKind.ANTHROPIC: AnthropicProvider(settings.anthropic_api_key, timeout=timeout),
    ProviderKind.GEMINI: GeminiProvider(settings.gemini_api_key, timeout=timeout),
    ProviderKind.OPENAI: OpenAIProvider(settings.openai_api_key, timeout=timeout),
  }
  return ModelRouter(providers, default_provider=ProviderKind(settings.default_provider))
