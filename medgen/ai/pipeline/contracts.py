"""Shared data contracts for the generation pipeline."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from medgen.ai.modes import GenerationMode


class GenerationContext(BaseModel):
  """Input context for one generation call."""

  model_config = ConfigDict(extra="ignore")

  specialty: str | None = None
  parent_grouping: str | None = None
  title: str
  description: str | None = None
  full_text: str | None = None

  def normalized(self) -> dict[str, Any]:
    """Return the context with strings stripped and empty fields dropped."""
    values: dict[str, Any] = {}
    for key, value in self.model_dump().items():
      if isinstance(value, str):
        value = value.strip()
        if not value:
          continue
      if value is None:
        continue
      values[key] = value
    return values

  def with_full_text(self, full_text: str | None) -> GenerationContext:
    return self.model_copy(update={"full_text": full_text})


class GenerationMetadata(BaseModel):
  """Provenance and accounting for one generation result."""

  provider: str
  model: str
  input_tokens: int = 0
  output_tokens: int = 0
  cost: dict[str, float] = Field(default_factory=lambda: {"input_cost": 0.0, "output_cost": 0.0, "total_cost": 0.0})
  generated_at: datetime
  cache_hit: bool = False
  cache_age_seconds: float | None = None
  cache_hits: int | None = None
  fallback: bool = False

  @property
  def tokens_used(self) -> int:
    return self.input_tokens + self.output_tokens

  @property
  def total_cost(self) -> float:
    return float(self.cost.get("total_cost", 0.0))


class GenerationResult(BaseModel):
  """Canonical output of one provider call, independent of the provider."""

  mode: GenerationMode
  payload: dict[str, Any]
  # False when the provider text could not be parsed and payload is {"text": raw}.
  structured: bool = True
  confidence: float | None = None
  sources: list[str] = Field(default_factory=list)
  warnings: list[str] = Field(default_factory=list)
  metadata: GenerationMetadata

  def cache_response(self) -> dict[str, Any]:
    """Serialized form stored in the cache; hit fields are reset on read."""
    return self.model_dump(mode="json", exclude={"metadata": {"cache_hit", "cache_age_seconds", "cache_hits"}})

  def as_cache_hit(self, *, age_seconds: float, hits: int) -> GenerationResult:
    metadata = self.metadata.model_copy(update={"cache_hit": True, "cache_age_seconds": age_seconds, "cache_hits": hits})
    return self.model_copy(update={"metadata": metadata})


class TopicSnapshot(BaseModel):
  """Topic fields the pipeline reads before running."""

  id: str
  title: str
  specialty_name: str | None = None
  parent_grouping_name: str | None = None
  description: str | None = None
  existing_full_text: str | None = None

  def to_context(self) -> GenerationContext:
    return GenerationContext(
      specialty=self.specialty_name, parent_grouping=self.parent_grouping_name, title=self.title, description=self.description, full_text=self.existing_full_text or None
    )


ModeStatus = Literal["completed", "skipped", "failed"]


class ModeOutcome(BaseModel):
  """Per-mode entry recorded in a job's result map."""

  mode: GenerationMode
  status: ModeStatus
  reason: str | None = None
  error: str | None = None
  cache_hit: bool = False
  cost: float = 0.0
  model: str | None = None
  payload: dict[str, Any] | None = None


class PipelineOutcome(BaseModel):
  """Result of running every requested mode for one topic."""

  topic_id: str
  status: Literal["completed", "failed"]
  modes: dict[str, ModeOutcome] = Field(default_factory=dict)
  error: str | None = None

  def result_map(self) -> dict[str, Any]:
    return {name: outcome.model_dump(mode="json", exclude_none=True) for name, outcome in self.modes.items()}
