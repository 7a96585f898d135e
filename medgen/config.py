"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

_SUPPORTED_PROVIDERS = {"anthropic", "gemini", "openai"}


@dataclass(frozen=True)
class Settings:
  """Typed settings for the generation service."""

  environment: str
  allowed_origins: tuple[str, ...]
  debug: bool
  pg_dsn: str | None
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  cache_ttl_seconds: int
  rate_limit_max_requests: int
  rate_limit_window_seconds: float
  batch_max_topics: int
  drain_default_limit: int
  drain_max_limit: int
  drain_concurrency: int
  processing_timeout_seconds: int
  default_provider: str
  provider_timeout_seconds: float
  anthropic_api_key: str | None
  gemini_api_key: str | None
  openai_api_key: str | None


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    raise ValueError("MEDGEN_ALLOWED_ORIGINS must be set to one or more origins.")

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("MEDGEN_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("MEDGEN_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  return value or None


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("MEDGEN_ENV", "development").lower()
  debug = _parse_bool(os.getenv("MEDGEN_DEBUG"))

  log_max_bytes = _positive_int("MEDGEN_LOG_MAX_BYTES", "5242880")
  log_backup_count = int(os.getenv("MEDGEN_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("MEDGEN_LOG_BACKUP_COUNT must be zero or a positive integer.")

  # Cache TTL and rate-limit thresholds are deployment inputs, not constants.
  cache_ttl_seconds = _positive_int("MEDGEN_CACHE_TTL_SECONDS", str(7 * 24 * 60 * 60))
  rate_limit_max_requests = _positive_int("MEDGEN_RATE_LIMIT_MAX_REQUESTS", "10")
  rate_limit_window_seconds = float(os.getenv("MEDGEN_RATE_LIMIT_WINDOW_SECONDS", "60"))
  if rate_limit_window_seconds <= 0:
    raise ValueError("MEDGEN_RATE_LIMIT_WINDOW_SECONDS must be positive.")

  batch_max_topics = _positive_int("MEDGEN_BATCH_MAX_TOPICS", "50")
  drain_max_limit = _positive_int("MEDGEN_DRAIN_MAX_LIMIT", "10")
  drain_default_limit = _positive_int("MEDGEN_DRAIN_DEFAULT_LIMIT", "5")
  if drain_default_limit > drain_max_limit:
    raise ValueError("MEDGEN_DRAIN_DEFAULT_LIMIT must not exceed MEDGEN_DRAIN_MAX_LIMIT.")
  drain_concurrency = _positive_int("MEDGEN_DRAIN_CONCURRENCY", "1")
  processing_timeout_seconds = _positive_int("MEDGEN_PROCESSING_TIMEOUT_SECONDS", "900")

  default_provider = (os.getenv("MEDGEN_DEFAULT_PROVIDER") or "anthropic").strip().lower()
  if default_provider not in _SUPPORTED_PROVIDERS:
    raise ValueError(f"MEDGEN_DEFAULT_PROVIDER must be one of {sorted(_SUPPORTED_PROVIDERS)}.")
  provider_timeout_seconds = float(os.getenv("MEDGEN_PROVIDER_TIMEOUT_SECONDS", "120"))

  return Settings(
    environment=environment,
    allowed_origins=_parse_origins(os.getenv("MEDGEN_ALLOWED_ORIGINS")),
    debug=debug,
    pg_dsn=os.getenv("MEDGEN_PG_DSN") or os.getenv("DATABASE_URL"),
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=_parse_bool(os.getenv("MEDGEN_LOG_HTTP_4XX")),
    cache_ttl_seconds=cache_ttl_seconds,
    rate_limit_max_requests=rate_limit_max_requests,
    rate_limit_window_seconds=rate_limit_window_seconds,
    batch_max_topics=batch_max_topics,
    drain_default_limit=drain_default_limit,
    drain_max_limit=drain_max_limit,
    drain_concurrency=drain_concurrency,
    processing_timeout_seconds=processing_timeout_seconds,
    default_provider=default_provider,
    provider_timeout_seconds=provider_timeout_seconds,
    anthropic_api_key=_optional_str(os.getenv("ANTHROPIC_API_KEY")),
    gemini_api_key=_optional_str(os.getenv("GEMINI_API_KEY")),
    openai_api_key=_optional_str(os.getenv("OPENAI_API_KEY")),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load only the settings needed to open a database connection."""

  return DatabaseSettings(debug=_parse_bool(os.getenv("MEDGEN_DEBUG")), pg_dsn=os.getenv("MEDGEN_PG_DSN") or os.getenv("DATABASE_URL"))
