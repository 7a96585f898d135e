"""Gemini generate-content adapter using the google-genai SDK."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from medgen.ai.errors import ProviderError
from medgen.ai.providers.base import ChatProvider, CompletionRequest, ProviderCompletion, with_backoff

logger = logging.getLogger(__name__)


def extract_gemini_completion(response: Any, model: str) -> ProviderCompletion:
  """Join candidate part texts and read usage_metadata from a generate_content response."""
  parts: list[str] = []
  candidates = getattr(response, "candidates", None) or []
  if candidates:
    content = getattr(candidates[0], "content", None)
    for part in getattr(content, "parts", None) or []:
      text = getattr(part, "text", None)
      if text:
        parts.append(text)

  usage = getattr(response, "usage_metadata", None)
  input_tokens = int(getattr(usage, "prompt_token_count", 0) or 0)
  output_tokens = int(getattr(usage, "candidates_token_count", 0) or 0)
  return ProviderCompletion(text="".join(parts), input_tokens=input_tokens, output_tokens=output_tokens, provider="gemini", model=model)


class GeminiProvider(ChatProvider):
  name = "gemini"

  def __init__(self, api_key: str | None, *, timeout: float = 120.0) -> None:
    self._api_key = api_key
    self._timeout = timeout
    self._client: genai.Client | None = None

  @property
  def is_configured(self) -> bool:
    return bool(self._api_key)

  def _get_client(self) -> genai.Client:
    if self._client is None:
      if not self._api_key:
        raise ProviderError("GEMINI_API_KEY is not configured.", provider=self.name)
      # HttpOptions.timeout is expressed in milliseconds.
      self._client = genai.Client(api_key=self._api_key, http_options=types.HttpOptions(timeout=int(self._timeout * 1000)))
    return self._client

  async def complete(self, request: CompletionRequest) -> ProviderCompletion:
    client = self._get_client()
    config = types.GenerateContentConfig(system_instruction=request.system_prompt, max_output_tokens=request.max_tokens, temperature=request.temperature)
    contents = [types.Content(role="user", parts=[types.Part(text=request.user_prompt)])]
    try:
      # Use the async client to avoid blocking the asyncio event loop.
      response = await with_backoff(client.aio.models.generate_content, model=request.model, contents=contents, config=config)
    except genai_errors.APIError as exc:
      raise ProviderError(f"Gemini returned {exc.code}: {exc.message}", provider=self.name, status_code=exc.code) from exc
    except httpx.HTTPError as exc:
      raise ProviderError(f"Gemini request failed: {type(exc).__name__}: {exc}", provider=self.name) from exc

    completion = extract_gemini_completion(response, request.model)
    logger.info("Gemini %s completed: in=%s out=%s", completion.model, completion.input_tokens, completion.output_tokens)
    return completion
