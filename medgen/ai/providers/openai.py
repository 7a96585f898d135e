"""OpenAI chat-completions adapter used for cross-model review."""

from __future__ import annotations

import logging
from typing import Any

from openai import APIError, APIStatusError, AsyncOpenAI

from medgen.ai.errors import ProviderError
from medgen.ai.providers.base import ChatProvider, CompletionRequest, ProviderCompletion, with_backoff

logger = logging.getLogger(__name__)


def extract_openai_completion(response: Any, model: str) -> ProviderCompletion:
  choices = getattr(response, "choices", None) or []
  text = ""
  if choices:
    message = getattr(choices[0], "message", None)
    text = getattr(message, "content", None) or ""

  usage = getattr(response, "usage", None)
  input_tokens = int(getattr(usage, "prompt_tokens", 0) or 0)
  output_tokens = int(getattr(usage, "completion_tokens", 0) or 0)
  return ProviderCompletion(text=text, input_tokens=input_tokens, output_tokens=output_tokens, provider="openai", model=model)


class OpenAIProvider(ChatProvider):
  name = "openai"

  def __init__(self, api_key: str | None, *, timeout: float = 120.0) -> None:
    self._api_key = api_key
    self._timeout = timeout
    self._client: AsyncOpenAI | None = None

  @property
  def is_configured(self) -> bool:
    return bool(self._api_key)

  def _get_client(self) -> AsyncOpenAI:
    if self._client is None:
      if not self._api_key:
        raise ProviderError("OPENAI_API_KEY is not configured.", provider=self.name)
      self._client = AsyncOpenAI(api_key=self._api_key, timeout=self._timeout)
    return self._client

  async def complete(self, request: CompletionRequest) -> ProviderCompletion:
    client = self._get_client()
    messages = [{"role": "system", "content": request.system_prompt}, {"role": "user", "content": request.user_prompt}]
    try:
      response = await with_backoff(
        client.chat.completions.create, model=request.model, messages=messages, max_tokens=request.max_tokens, temperature=request.temperature, response_format={"type": "json_object"}
      )
    except APIStatusError as exc:
      raise ProviderError(f"OpenAI returned {exc.status_code}: {exc.message}", provider=self.name, status_code=exc.status_code) from exc
    except APIError as exc:
      raise ProviderError(f"OpenAI request failed: {exc}", provider=self.name) from exc

    completion = extract_openai_completion(response, request.model)
    logger.info("OpenAI %s completed: in=%s out=%s", completion.model, completion.input_tokens, completion.output_tokens)
    return completion
