"""Best-effort JSON extraction for provider text output."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Literal

_FENCE_OPEN_RE = re.compile(r"^\s*```(?:json|JSON)?\s*")
_FENCE_CLOSE_RE = re.compile(r"\s*```\s*$")

PayloadKind = Literal["structured", "fallback"]


@dataclass(frozen=True)
class ParsedPayload:
  """Tagged result of extraction; callers branch on ``kind`` before reading fields."""

  kind: PayloadKind
  data: dict[str, Any]

  @property
  def structured(self) -> bool:
    return self.kind == "structured"


def strip_code_fences(raw: str) -> str:
  """Remove leading and trailing markdown code fences."""
  cleaned = _FENCE_OPEN_RE.sub("", raw)
  cleaned = _FENCE_CLOSE_RE.sub("", cleaned)
  return cleaned.strip()


def extract_payload(raw: str) -> ParsedPayload:
  """Parse provider text as JSON, falling back to a raw-text wrapper.

  Tiers, first success wins:
  1. strict parse of the fence-stripped text
  2. strict parse of the substring between the first ``{`` and the last ``}``
  3. ``{"text": raw}`` tagged as fallback

  Never raises.
  """
  text = raw or ""
  cleaned = strip_code_fences(text)

  parsed = _loads_object(cleaned)
  if parsed is not None:
    return ParsedPayload(kind="structured", data=normalize_escapes(parsed))

  # Providers sometimes wrap JSON in prose; retry on the outermost brace span.
  start = cleaned.find("{")
  end = cleaned.rfind("}")
  if start != -1 and end > start:
    parsed = _loads_object(cleaned[start : end + 1])
    if parsed is not None:
      return ParsedPayload(kind="structured", data=normalize_escapes(parsed))

  return ParsedPayload(kind="fallback", data={"text": text})


def _loads_object(candidate: str) -> dict[str, Any] | None:
  try:
    value = json.loads(candidate)
  except (json.JSONDecodeError, ValueError):
    return None

  # Only objects count as structured payloads.
  if isinstance(value, dict):
    return value
  return None


def normalize_escapes(value: Any) -> Any:
  """Turn literal ``\\n`` and ``\\t`` sequences inside string fields into real whitespace."""
  if isinstance(value, str):
    return value.replace("\\r\\n", "\n").replace("\\n", "\n").replace("\\t", "\t")
  if isinstance(value, dict):
    return {key: normalize_escapes(item) for key, item in value.items()}
  if isinstance(value, list):
    return [normalize_escapes(item) for item in value]
  return value
