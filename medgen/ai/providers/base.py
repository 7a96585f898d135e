"""Base interfaces for LLM providers."""

from __future__ import annotations

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionRequest:
  """Provider-agnostic request for one chat-style completion."""

  system_prompt: str
  user_prompt: str
  model: str
  max_tokens: int
  temperature: float = 0.3


@dataclass(frozen=True)
class ProviderCompletion:
  """Concatenated text and token usage from one provider call."""

  text: str
  input_tokens: int
  output_tokens: int
  provider: str
  model: str


class ChatProvider(ABC):
  """Abstract base class for providers the router can call."""

  name: str

  @property
  @abstractmethod
  def is_configured(self) -> bool:
    """Return True when the provider has a usable credential."""

  @abstractmethod
  async def complete(self, request: CompletionRequest) -> ProviderCompletion:
    """Issue the call and return the normalized completion."""


def _is_rate_limited(exc: Exception) -> bool:
  status = getattr(exc, "status_code", None) or getattr(exc, "code", None)
  if status == 429:
    return True
  message = str(exc)
  return "429" in message or "Too Many Requests" in message or "Resource Exhausted" in message


async def with_backoff(func: Callable[..., Awaitable[T]], *args: Any, retries: int = 3, base_delay: float = 1.0, **kwargs: Any) -> T:
  """Retry a provider call on 429 responses with jittered exponential delay."""
  for attempt in range(retries):
    try:
      return await func(*args, **kwargs)
    except Exception as exc:
      if not _is_rate_limited(exc) or attempt == retries - 1:
        raise
      delay = base_delay * (2**attempt) + random.uniform(0, 1)
      logger.warning("Provider rate limited (attempt %s/%s); retrying in %.1fs", attempt + 1, retries, delay)
      await asyncio.sleep(delay)
  return await func(*args, **kwargs)
