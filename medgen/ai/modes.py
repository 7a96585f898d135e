"""Closed set of generation modes and their routing configuration."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Final

from medgen.ai import prompts
from medgen.ai.errors import GenerationValidationError


class GenerationMode(str, Enum):
  FULLTEXT = "fulltext"
  DEEP_DIVE = "deep_dive"
  HIGH_YIELD = "high_yield"
  FLASHCARDS = "flashcards"
  MCQ = "mcq"
  REVIEW = "review"


class ProviderKind(str, Enum):
  ANTHROPIC = "anthropic"
  GEMINI = "gemini"
  OPENAI = "openai"


@dataclass(frozen=True)
class ModeConfig:
  """Prompt templates, provider route and dependency flags for one mode."""

  system_template: str
  user_template: str
  provider: ProviderKind
  model: str
  max_tokens: int
  temperature: float = 0.3
  depends_on_fulltext: bool = False
  produces_fulltext: bool = False
  # Characters of full text forwarded into the prompt; None keeps it all.
  fulltext_char_limit: int | None = None

  @property
  def uses_fulltext(self) -> bool:
    return not self.produces_fulltext


OPUS: Final[str] = "claude-opus-4-20250514"
SONNET: Final[str] = "claude-sonnet-4-20250514"
HAIKU: Final[str] = "claude-haiku-4-5-20251001"
GPT4O: Final[str] = "gpt-4o"
GEMINI_FLASH: Final[str] = "gemini-2.5-flash"

MODE_CONFIGS: Final[dict[GenerationMode, ModeConfig]] = {
  GenerationMode.FULLTEXT: ModeConfig(
    system_template=prompts.FULLTEXT_SYSTEM, user_template=prompts.FULLTEXT_USER, provider=ProviderKind.ANTHROPIC, model=OPUS, max_tokens=8192, produces_fulltext=True
  ),
  GenerationMode.DEEP_DIVE: ModeConfig(
    system_template=prompts.DEEP_DIVE_SYSTEM, user_template=prompts.DEEP_DIVE_USER, provider=ProviderKind.ANTHROPIC, model=OPUS, max_tokens=8192, fulltext_char_limit=3000
  ),
  GenerationMode.HIGH_YIELD: ModeConfig(
    system_template=prompts.HIGH_YIELD_SYSTEM,
    user_template=prompts.HIGH_YIELD_USER,
    provider=ProviderKind.GEMINI,
    model=GEMINI_FLASH,
    max_tokens=2048,
    depends_on_fulltext=True,
    fulltext_char_limit=15000,
  ),
  GenerationMode.FLASHCARDS: ModeConfig(
    system_template=prompts.FLASHCARDS_SYSTEM,
    user_template=prompts.FLASHCARDS_USER,
    provider=ProviderKind.ANTHROPIC,
    model=HAIKU,
    max_tokens=2048,
    depends_on_fulltext=True,
    fulltext_char_limit=10000,
  ),
  GenerationMode.MCQ: ModeConfig(
    system_template=prompts.MCQ_SYSTEM, user_template=prompts.MCQ_USER, provider=ProviderKind.ANTHROPIC, model=SONNET, max_tokens=2048, depends_on_fulltext=True, fulltext_char_limit=10000
  ),
  GenerationMode.REVIEW: ModeConfig(
    system_template=prompts.REVIEW_SYSTEM, user_template=prompts.REVIEW_USER, provider=ProviderKind.OPENAI, model=GPT4O, max_tokens=4096, temperature=0.2, depends_on_fulltext=True
  ),
}

# Aliases accepted on /generate as model_override.
MODEL_ALIASES: Final[dict[str, tuple[ProviderKind, str]]] = {
  "opus": (ProviderKind.ANTHROPIC, OPUS),
  "sonnet": (ProviderKind.ANTHROPIC, SONNET),
  "haiku": (ProviderKind.ANTHROPIC, HAIKU),
  "gpt4o": (ProviderKind.OPENAI, GPT4O),
  "gemini_flash": (ProviderKind.GEMINI, GEMINI_FLASH),
}

# Model used when a mode falls back to the default provider.
DEFAULT_PROVIDER_MODELS: Final[dict[ProviderKind, str]] = {ProviderKind.ANTHROPIC: SONNET, ProviderKind.GEMINI: GEMINI_FLASH, ProviderKind.OPENAI: GPT4O}

_LEGACY_MODE_ALIASES: Final[dict[str, GenerationMode]] = {
  "topic_generate_fulltext_v2": GenerationMode.FULLTEXT,
  "topic_generate_fulltext": GenerationMode.FULLTEXT,
  "topic_generate_high_yield": GenerationMode.HIGH_YIELD,
  "topic_generate_deep_dive": GenerationMode.DEEP_DIVE,
}

DEFAULT_MODES: Final[tuple[GenerationMode, ...]] = (GenerationMode.FULLTEXT, GenerationMode.HIGH_YIELD, GenerationMode.FLASHCARDS)


def _validate_mode_table() -> None:
  # Every enum member must have exactly one config; a missing entry is a startup bug.
  missing = [mode.value for mode in GenerationMode if mode not in MODE_CONFIGS]
  if missing:
    raise RuntimeError(f"Mode table is missing entries for: {', '.join(missing)}")

  producers = [mode for mode, config in MODE_CONFIGS.items() if config.produces_fulltext]
  if len(producers) != 1:
    raise RuntimeError("Exactly one mode must produce full text.")

  for mode, config in MODE_CONFIGS.items():
    if config.produces_fulltext and config.depends_on_fulltext:
      raise RuntimeError(f"Mode {mode.value} cannot both produce and depend on full text.")
    if config.max_tokens <= 0:
      raise RuntimeError(f"Mode {mode.value} has a non-positive max_tokens.")


_validate_mode_table()

FULLTEXT_PRODUCER: Final[GenerationMode] = next(mode for mode, config in MODE_CONFIGS.items() if config.produces_fulltext)


def normalize_mode(raw: str | GenerationMode) -> GenerationMode:
  """Resolve a mode name or legacy alias into a GenerationMode."""
  if isinstance(raw, GenerationMode):
    return raw

  key = str(raw or "").strip().lower()
  if key in _LEGACY_MODE_ALIASES:
    return _LEGACY_MODE_ALIASES[key]

  try:
    return GenerationMode(key)
  except ValueError as exc:
    allowed = ", ".join(mode.value for mode in GenerationMode)
    raise GenerationValidationError(f"Unsupported mode '{raw}'. Expected one of: {allowed}.", field="mode") from exc


def normalize_modes(raw_modes: list[str] | tuple[str, ...] | None) -> list[GenerationMode]:
  """Normalize a requested mode list, preserving first-seen order and dropping duplicates."""
  if not raw_modes:
    return list(DEFAULT_MODES)

  seen: set[GenerationMode] = set()
  ordered: list[GenerationMode] = []
  for raw in raw_modes:
    mode = normalize_mode(raw)
    if mode in seen:
      continue
    seen.add(mode)
    ordered.append(mode)
  return ordered


def get_mode_config(mode: GenerationMode) -> ModeConfig:
  return MODE_CONFIGS[mode]


def resolve_model_alias(alias: str | None) -> tuple[ProviderKind, str] | None:
  """Return the (provider, model) pair for an override alias."""
  if alias is None:
    return None

  key = alias.strip().lower()
  if key not in MODEL_ALIASES:
    allowed = ", ".join(sorted(MODEL_ALIASES))
    raise GenerationValidationError(f"Unsupported model_override '{alias}'. Expected one of: {allowed}.", field="model_override")
  return MODEL_ALIASES[key]
