from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, RootModel, StrictStr, field_validator

from medgen.ai.errors import GenerationValidationError
from medgen.ai.modes import MODEL_ALIASES, GenerationMode, normalize_mode
from medgen.ai.pipeline.contracts import GenerationContext


class GenerationContextModel(BaseModel):
  """Topic context accepted on /generate."""

  model_config = ConfigDict(extra="ignore", populate_by_name=True)

  specialty: StrictStr | None = Field(default=None, max_length=100)
  parent_grouping: StrictStr | None = Field(default=None, max_length=200, validation_alias=AliasChoices("parent_grouping", "okruh"))
  title: StrictStr = Field(min_length=1, max_length=300)
  description: StrictStr | None = Field(default=None, max_length=1000)
  full_text: StrictStr | None = Field(default=None, max_length=80000)

  @field_validator("title")
  @classmethod
  def _title_not_blank(cls, value: str) -> str:
    if not value.strip():
      raise ValueError("title must not be blank")
    return value

  def to_context(self) -> GenerationContext:
    return GenerationContext(specialty=self.specialty, parent_grouping=self.parent_grouping, title=self.title, description=self.description, full_text=self.full_text)


def _mode_or_error(value: Any) -> GenerationMode:
  try:
    return normalize_mode(value)
  except GenerationValidationError as exc:
    # pydantic only turns ValueError into a validation error entry.
    raise ValueError(str(exc)) from exc


class GenerateRequest(BaseModel):
  model_config = ConfigDict(extra="forbid", protected_namespaces=())

  mode: GenerationMode
  context: GenerationContextModel
  model_override: StrictStr | None = None

  @field_validator("mode", mode="before")
  @classmethod
  def _normalize_mode(cls, value: Any) -> GenerationMode:
    return _mode_or_error(value)

  @field_validator("model_override")
  @classmethod
  def _known_alias(cls, value: str | None) -> str | None:
    if value is None:
      return None
    key = value.strip().lower()
    if key not in MODEL_ALIASES:
      raise ValueError(f"model_override must be one of: {', '.join(sorted(MODEL_ALIASES))}")
    return key


class EnqueueAction(BaseModel):
  model_config = ConfigDict(extra="forbid")

  action: Literal["enqueue"]
  topic_ids: list[StrictStr] = Field(min_length=1)
  modes: list[StrictStr] | None = None
  priority_base: int = 0

  @field_validator("modes")
  @classmethod
  def _known_modes(cls, value: list[str] | None) -> list[str] | None:
    if value is None:
      return None
    return [_mode_or_error(mode).value for mode in value]


class ProcessAction(BaseModel):
  model_config = ConfigDict(extra="forbid")

  action: Literal["process"]
  limit: int | None = Field(default=None, ge=1)


class StatusAction(BaseModel):
  model_config = ConfigDict(extra="forbid")

  action: Literal["status"]


class BatchRequest(RootModel[Annotated[EnqueueAction | ProcessAction | StatusAction, Field(discriminator="action")]]):
  """Body of POST /batch, dispatched on ``action``."""


class CacheStatsAction(BaseModel):
  action: Literal["stats"]


class CacheClearAction(BaseModel):
  action: Literal["clear"]
  mode: GenerationMode | None = None

  @field_validator("mode", mode="before")
  @classmethod
  def _normalize_mode(cls, value: Any) -> GenerationMode | None:
    if value is None:
      return None
    return _mode_or_error(value)


class CachePurgeAction(BaseModel):
  action: Literal["purge_expired"]


class CacheRequest(RootModel[Annotated[CacheStatsAction | CacheClearAction | CachePurgeAction, Field(discriminator="action")]]):
  """Body of POST /cache, dispatched on ``action``."""
