"""Staged pipeline that runs requested modes for one topic in dependency order."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from medgen.ai.errors import PersistenceError, ProviderError
from medgen.ai.generation import GenerationService
from medgen.ai.modes import FULLTEXT_PRODUCER, GenerationMode, get_mode_config, normalize_modes
from medgen.ai.pipeline.contracts import GenerationResult, ModeOutcome, PipelineOutcome
from medgen.storage.topics_repo import TopicsRepository

logger = logging.getLogger(__name__)

DEFAULT_FULLTEXT_CONFIDENCE = 0.8
DEFAULT_FLASHCARD_CONFIDENCE = 0.85
DEFAULT_DIFFICULTY = 2

# Payload field holding the generated text for each topic-text mode, and the topic column it lands in.
_TEXT_FIELDS: dict[GenerationMode, tuple[str, str]] = {
  GenerationMode.FULLTEXT: ("full_text", "full_text_content"),
  GenerationMode.HIGH_YIELD: ("high_yield", "bullet_points_summary"),
  GenerationMode.DEEP_DIVE: ("deep_dive", "deep_dive_content"),
}

SKIP_NO_FULLTEXT = "No full text available and 'fulltext' was not requested."
SKIP_FULLTEXT_MISSING = "The fulltext stage did not produce any text."


class StageDataError(ValueError):
  """The provider output lacked the field a stage needs; recorded as a soft failure."""


def plan_modes(modes: Sequence[str | GenerationMode] | None) -> list[GenerationMode]:
  """Order requested modes so the full-text producer always runs first.

  The remaining modes keep their requested order; duplicates are dropped.
  """
  ordered = normalize_modes([mode.value if isinstance(mode, GenerationMode) else mode for mode in modes] if modes else None)
  if FULLTEXT_PRODUCER in ordered:
    ordered.remove(FULLTEXT_PRODUCER)
    ordered.insert(0, FULLTEXT_PRODUCER)
  return ordered


def flashcard_rows(result: GenerationResult) -> list[dict[str, Any]]:
  """Map a flashcards payload into flashcard rows, filling per-card defaults."""
  cards = result.payload.get("flashcards")
  if not isinstance(cards, list):
    raise StageDataError("Provider output has no 'flashcards' list.")

  confidence = result.confidence if result.confidence is not None else DEFAULT_FLASHCARD_CONFIDENCE
  rows: list[dict[str, Any]] = []
  for card in cards:
    if not isinstance(card, dict) or not card.get("question") or not card.get("answer"):
      continue
    rows.append(
      {
        "question": str(card["question"]),
        "answer": str(card["answer"]),
        "difficulty": _difficulty(card.get("difficulty")),
        "tags": _tags(card.get("tags")),
        "ai_generated": True,
        "ai_model": result.metadata.model,
        "ai_confidence": confidence,
      }
    )
  return rows


def question_rows(result: GenerationResult) -> list[dict[str, Any]]:
  """Map an MCQ payload into question rows; answer and options share one stored JSON field."""
  questions = result.payload.get("questions")
  if not isinstance(questions, list):
    raise StageDataError("Provider output has no 'questions' list.")

  rows: list[dict[str, Any]] = []
  for question in questions:
    if not isinstance(question, dict) or not question.get("question_text"):
      continue
    rows.append(
      {
        "question_text": str(question["question_text"]),
        "question_type": "multiple_choice",
        "correct_answer": json.dumps({"answer": question.get("correct_answer"), "options": question.get("options")}, ensure_ascii=False),
        "explanation": question.get("explanation"),
        "difficulty": _difficulty(question.get("difficulty")),
        "tags": _tags(question.get("tags")),
        "ai_generated": True,
      }
    )
  return rows


def _difficulty(value: Any) -> int:
  if isinstance(value, bool):
    return DEFAULT_DIFFICULTY
  try:
    parsed = int(value)
  except (TypeError, ValueError):
    return DEFAULT_DIFFICULTY
  return parsed if parsed > 0 else DEFAULT_DIFFICULTY


def _tags(value: Any) -> list[str]:
  if not isinstance(value, list):
    return []
  return [str(tag) for tag in value if tag]


def _stage_text(mode: GenerationMode, result: GenerationResult) -> str:
  field, _ = _TEXT_FIELDS[mode]
  value = result.payload.get(field)
  if isinstance(value, str) and value.strip():
    return value

  # Unparseable output is still usable prose for the text stages.
  if not result.structured:
    raw = result.payload.get("text")
    if isinstance(raw, str) and raw.strip():
      return raw
  raise StageDataError(f"Provider output has no '{field}' text.")


def _aborted(topic_id: str, plan: list[GenerationMode], index: int, outcomes: dict[str, ModeOutcome], error: str) -> PipelineOutcome:
  """Fail the mode at ``index``, skip the rest, and keep earlier outcomes."""
  mode = plan[index]
  outcomes[mode.value] = ModeOutcome(mode=mode, status="failed", error=error)
  for remaining in plan[index + 1 :]:
    outcomes[remaining.value] = ModeOutcome(mode=remaining, status="skipped", reason=f"Aborted after {mode.value} failed.")
  return PipelineOutcome(topic_id=topic_id, status="failed", modes=outcomes, error=f"{mode.value}: {error}")


class PipelineOrchestrator:
  """Run a topic's requested modes in order, feeding full text forward."""

  def __init__(self, generation: GenerationService, topics: TopicsRepository, *, clock: Callable[[], datetime] | None = None) -> None:
    self._generation = generation
    self._topics = topics
    self._clock = clock or (lambda: datetime.now(UTC))

  async def run(self, topic_id: str, modes: Sequence[str | GenerationMode] | None = None, *, identity: str | None = None) -> PipelineOutcome:
    plan = plan_modes(modes)

    try:
      topic = await self._topics.get_topic(topic_id)
    except Exception as exc:
      raise PersistenceError(stage="load", store="topics", cause=exc) from exc
    if topic is None:
      return PipelineOutcome(topic_id=topic_id, status="failed", error=f"Topic {topic_id} not found.")

    context = topic.to_context()
    full_text = topic.existing_full_text or None
    fulltext_requested = FULLTEXT_PRODUCER in plan
    outcomes: dict[str, ModeOutcome] = {}

    for index, mode in enumerate(plan):
      config = get_mode_config(mode)
      if config.depends_on_fulltext and not full_text:
        reason = SKIP_FULLTEXT_MISSING if fulltext_requested else SKIP_NO_FULLTEXT
        logger.info("Skipping %s for topic %s: %s", mode.value, topic_id, reason)
        outcomes[mode.value] = ModeOutcome(mode=mode, status="skipped", reason=reason)
        continue

      # Read the current full text at each stage so earlier stages in this run are visible.
      stage_context = context.with_full_text(full_text if config.uses_fulltext else None)
      logger.info("Running %s for topic %s", mode.value, topic_id)

      try:
        result = await self._generation.generate(mode, stage_context, identity=identity, topic_id=topic_id)
        summary, produced_text = await self._persist(topic_id, mode, result)
      except StageDataError as exc:
        logger.warning("Mode %s produced unusable output for topic %s: %s", mode.value, topic_id, exc)
        outcomes[mode.value] = ModeOutcome(mode=mode, status="failed", error=str(exc), model=result.metadata.model, cache_hit=result.metadata.cache_hit)
        continue
      except (ProviderError, PersistenceError) as exc:
        logger.error("Mode %s failed for topic %s; aborting remaining stages.", mode.value, topic_id, exc_info=True)
        return _aborted(topic_id, plan, index, outcomes, str(exc))
      except Exception as exc:  # noqa: BLE001
        # Unexpected errors end the run but keep the earlier outcomes.
        logger.error("Mode %s raised unexpectedly for topic %s; aborting remaining stages.", mode.value, topic_id, exc_info=True)
        return _aborted(topic_id, plan, index, outcomes, f"{type(exc).__name__}: {exc}")

      if produced_text is not None:
        full_text = produced_text

      metadata = result.metadata
      outcomes[mode.value] = ModeOutcome(
        mode=mode,
        status="completed",
        cache_hit=metadata.cache_hit,
        cost=0.0 if metadata.cache_hit else metadata.total_cost,
        model=metadata.model,
        payload=summary,
      )

    return PipelineOutcome(topic_id=topic_id, status="completed", modes=outcomes)

  async def _persist(self, topic_id: str, mode: GenerationMode, result: GenerationResult) -> tuple[dict[str, Any], str | None]:
    """Write a stage's side effects.

    Returns a compact summary for the job result and, for the full-text stage, the produced text.
    """
    if mode in _TEXT_FIELDS:
      text = _stage_text(mode, result)
      _, column = _TEXT_FIELDS[mode]
      fields: dict[str, Any] = {column: text}
      if mode is GenerationMode.FULLTEXT:
        fields.update(
          {
            "ai_model": result.metadata.model,
            "ai_confidence": result.confidence if result.confidence is not None else DEFAULT_FULLTEXT_CONFIDENCE,
            "ai_generated_at": self._clock(),
            "ai_cost": Decimal(str(result.metadata.total_cost)),
            "sources": result.sources,
            "warnings": result.warnings,
            "status": "draft",
          }
        )
      await self._write(mode, "topics", self._topics.update_topic(topic_id, fields))
      produced = text if mode is FULLTEXT_PRODUCER else None
      return {"column": column, "length": len(text)}, produced

    if mode is GenerationMode.FLASHCARDS:
      inserted = await self._write(mode, "flashcards", self._topics.insert_flashcards(topic_id, flashcard_rows(result)))
      return {"inserted": inserted}, None

    if mode is GenerationMode.MCQ:
      inserted = await self._write(mode, "questions", self._topics.insert_questions(topic_id, question_rows(result)))
      return {"inserted": inserted}, None

    if mode is GenerationMode.REVIEW:
      if not result.structured:
        raise StageDataError("Review output was not valid JSON.")
      await self._write(mode, "topics", self._topics.update_topic(topic_id, {"ai_review": result.payload}))
      return {"approved": result.payload.get("approved"), "overall_score": result.payload.get("overall_score")}, None

    raise RuntimeError(f"No persistence rule for mode {mode.value}.")

  async def _write(self, mode: GenerationMode, store: str, operation: Any) -> Any:
    try:
      return await operation
    except Exception as exc:
      raise PersistenceError(stage=mode.value, store=store, cause=exc) from exc
