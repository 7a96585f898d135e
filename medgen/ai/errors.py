"""Error taxonomy for the generation pipeline."""

from __future__ import annotations

_MAX_PROVIDER_DETAIL = 500


class GenerationValidationError(ValueError):
  """Raised for client-correctable input problems (bad mode, oversized batch)."""

  def __init__(self, message: str, *, field: str | None = None) -> None:
    super().__init__(message)
    self.field = field


class ProviderError(RuntimeError):
  """Raised when a provider call fails at the transport or API layer."""

  def __init__(self, message: str, *, provider: str | None = None, status_code: int | None = None) -> None:
    super().__init__(truncate_detail(message))
    self.provider = provider
    self.status_code = status_code


class MissingCredentialError(ProviderError):
  """Raised when neither the preferred nor the default provider has a credential."""


class PersistenceError(RuntimeError):
  """Raised when a downstream store write fails for a pipeline stage."""

  def __init__(self, *, stage: str, store: str, cause: BaseException) -> None:
    super().__init__(f"{stage}: write to {store} failed: {truncate_detail(str(cause) or type(cause).__name__)}")
    self.stage = stage
    self.store = store


class RateLimitExceededError(RuntimeError):
  """Raised when an identity exhausts its request window."""

  def __init__(self, *, identity: str, retry_after: float) -> None:
    super().__init__(f"Rate limit exceeded; retry after {retry_after:.1f}s")
    self.identity = identity
    self.retry_after = retry_after


def truncate_detail(message: str, limit: int = _MAX_PROVIDER_DETAIL) -> str:
  """Clamp provider error text so job rows and logs stay bounded."""
  if len(message) <= limit:
    return message
  return message[:limit] + "...(truncated)"
