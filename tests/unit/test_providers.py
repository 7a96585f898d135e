"""Unit tests for provider response extraction and retry behaviour."""

from __future__ import annotations

from types import SimpleNamespace

import httpx
import pytest

from medgen.ai.errors import ProviderError
from medgen.ai.providers.anthropic import AnthropicProvider, extract_anthropic_completion
from medgen.ai.providers.base import CompletionRequest, with_backoff
from medgen.ai.providers.gemini import GeminiProvider, extract_gemini_completion
from medgen.ai.providers.openai import extract_openai_completion


def test_anthropic_joins_text_blocks_only() -> None:
  response = SimpleNamespace(
    model="claude-haiku-4-5-20251001",
    content=[SimpleNamespace(type="text", text='{"a": '), SimpleNamespace(type="tool_use", text="ignored"), SimpleNamespace(type="text", text="1}")],
    usage=SimpleNamespace(input_tokens=120, output_tokens=40),
  )
  completion = extract_anthropic_completion(response, "fallback-model")
  assert completion.text == '{"a": 1}'
  assert (completion.input_tokens, completion.output_tokens) == (120, 40)
  assert completion.model == "claude-haiku-4-5-20251001"


def test_anthropic_tolerates_missing_usage() -> None:
  completion = extract_anthropic_completion(SimpleNamespace(content=[], usage=None), "claude-sonnet-4-20250514")
  assert completion.text == ""
  assert completion.input_tokens == 0
  assert completion.model == "claude-sonnet-4-20250514"


def test_gemini_reads_first_candidate_and_usage_metadata() -> None:
  response = SimpleNamespace(
    candidates=[SimpleNamespace(content=SimpleNamespace(parts=[SimpleNamespace(text="Hello "), SimpleNamespace(text=None), SimpleNamespace(text="world")]))],
    usage_metadata=SimpleNamespace(prompt_token_count=2000, candidates_token_count=1000),
  )
  completion = extract_gemini_completion(response, "gemini-2.5-flash")
  assert completion.text == "Hello world"
  assert (completion.input_tokens, completion.output_tokens) == (2000, 1000)
  assert completion.provider == "gemini"


def test_gemini_without_candidates_is_empty() -> None:
  completion = extract_gemini_completion(SimpleNamespace(candidates=None, usage_metadata=None), "gemini-2.5-flash")
  assert completion.text == ""
  assert completion.output_tokens == 0


def test_openai_reads_message_content() -> None:
  response = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content='{"approved": true}'))], usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5))
  completion = extract_openai_completion(response, "gpt-4o")
  assert completion.text == '{"approved": true}'
  assert (completion.input_tokens, completion.output_tokens) == (10, 5)


def test_unconfigured_provider_reports_so() -> None:
  assert not AnthropicProvider(None).is_configured
  assert AnthropicProvider("sk-test").is_configured


@pytest.mark.anyio
async def test_unconfigured_provider_raises_provider_error() -> None:
  with pytest.raises(ProviderError):
    await AnthropicProvider(None).complete(CompletionRequest(system_prompt="s", user_prompt="u", model="claude-sonnet-4-20250514", max_tokens=10))


class _RateLimited(Exception):
  status_code = 429


@pytest.mark.anyio
async def test_with_backoff_retries_rate_limits() -> None:
  attempts = []

  async def _flaky() -> str:
    attempts.append(1)
    if len(attempts) < 3:
      raise _RateLimited("Too Many Requests")
    return "ok"

  assert await with_backoff(_flaky, retries=3, base_delay=0.0) == "ok"
  assert len(attempts) == 3


@pytest.mark.anyio
async def test_with_backoff_does_not_retry_other_errors() -> None:
  attempts = []

  async def _broken() -> str:
    attempts.append(1)
    raise ValueError("bad request")

  with pytest.raises(ValueError):
    await with_backoff(_broken, retries=3, base_delay=0.0)
  assert len(attempts) == 1


@pytest.mark.anyio
async def test_gemini_wraps_transport_errors_as_provider_error() -> None:
  async def _timeout(**kwargs: object) -> None:
    raise httpx.ReadTimeout("timed out")

  provider = GeminiProvider("key")
  provider._client = SimpleNamespace(aio=SimpleNamespace(models=SimpleNamespace(generate_content=_timeout)))  # type: ignore[assignment]

  with pytest.raises(ProviderError) as excinfo:
    await provider.complete(CompletionRequest(system_prompt="s", user_prompt="u", model="gemini-2.0-flash", max_tokens=10))
  assert excinfo.value.provider == "gemini"
  assert "ReadTimeout" in str(excinfo.value)
