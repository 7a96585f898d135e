"""Anthropic chat-completion adapter."""

from __future__ import annotations

import logging
from typing import Any

import anthropic

from medgen.ai.errors import ProviderError
from medgen.ai.providers.base import ChatProvider, CompletionRequest, ProviderCompletion, with_backoff

logger = logging.getLogger(__name__)


def extract_anthropic_completion(response: Any, model: str) -> ProviderCompletion:
  """Join text blocks and read usage from a Messages API response."""
  parts: list[str] = []
  for block in getattr(response, "content", None) or []:
    # Tool and thinking blocks carry no prose.
    if getattr(block, "type", None) == "text":
      parts.append(getattr(block, "text", "") or "")

  usage = getattr(response, "usage", None)
  input_tokens = int(getattr(usage, "input_tokens", 0) or 0)
  output_tokens = int(getattr(usage, "output_tokens", 0) or 0)
  return ProviderCompletion(text="".join(parts), input_tokens=input_tokens, output_tokens=output_tokens, provider="anthropic", model=getattr(response, "model", None) or model)


class AnthropicProvider(ChatProvider):
  name = "anthropic"

  def __init__(self, api_key: str | None, *, timeout: float = 120.0) -> None:
    self._api_key = api_key
    self._timeout = timeout
    self._client: anthropic.AsyncAnthropic | None = None

  @property
  def is_configured(self) -> bool:
    return bool(self._api_key)

  def _get_client(self) -> anthropic.AsyncAnthropic:
    if self._client is None:
      if not self._api_key:
        raise ProviderError("ANTHROPIC_API_KEY is not configured.", provider=self.name)
      self._client = anthropic.AsyncAnthropic(api_key=self._api_key, timeout=self._timeout)
    return self._client

  async def complete(self, request: CompletionRequest) -> ProviderCompletion:
    client = self._get_client()
    try:
      response = await with_backoff(
        client.messages.create,
        model=request.model,
        max_tokens=request.max_tokens,
        temperature=request.temperature,
        system=request.system_prompt,
        messages=[{"role": "user", "content": request.user_prompt}],
      )
    except anthropic.APIStatusError as exc:
      raise ProviderError(f"Anthropic returned {exc.status_code}: {exc.message}", provider=self.name, status_code=exc.status_code) from exc
    except anthropic.APIError as exc:
      raise ProviderError(f"Anthropic request failed: {exc}", provider=self.name) from exc

    completion = extract_anthropic_completion(response, request.model)
    logger.info("Anthropic %s completed: in=%s out=%s", completion.model, completion.input_tokens, completion.output_tokens)
    return completion
