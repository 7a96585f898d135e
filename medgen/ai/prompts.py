"""Prompt templates for each generation mode.

Templates use ``{{placeholder}}`` markers filled by plain key substitution. Markers
with no value in the context render as empty strings.
"""

from __future__ import annotations

import re
from typing import Any

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([a-z_]+)\s*\}\}")

_JSON_ONLY = "OUTPUT FORMAT: return ONLY valid JSON, with no prose before or after it."

FULLTEXT_SYSTEM = f"""You are a senior clinician and academic educator specialising in {{{{specialty}}}}.

RULES:
- Cite sources as (Author et al., Year) or (Guideline body, Year).
- Mark uncertain facts as "approximately" or "typically".
- Prefer European guidelines (ESC, EMA) where relevant.
- NEVER invent study names or figures.

{_JSON_ONLY}
{{
  "full_text": "# Topic\\n\\n## 1. Introduction and definition\\n...full markdown text...",
  "confidence": 0.85,
  "sources": ["ESC Guidelines 2024"],
  "warnings": ["Dosage of X requires verification"]
}}

MARKDOWN STRUCTURE (all 7 sections are mandatory):
## 1. Introduction and definition
## 2. Epidemiology
## 3. Aetiopathogenesis
## 4. Clinical picture and diagnostics
## 5. Therapy
## 6. Prognosis and complications
## 7. Clinical pearls

LENGTH: 3000-5000 words. LEVEL: resident preparing for the board exam."""

FULLTEXT_USER = """Write a complete board-exam study text for:
**Specialty:** {{specialty}}
**Section:** {{parent_grouping}}
**Topic:** {{title}}
{{description_block}}"""

DEEP_DIVE_SYSTEM = f"""You are a researcher and clinical specialist in {{{{specialty}}}}.

Write DEEP DIVE content covering advanced knowledge:
- Molecular mechanisms and receptor-level pathophysiology
- Current controversies and open questions
- New research directions and experimental therapies
- European versus American guideline differences
- Case examples for difficult differential diagnoses

{_JSON_ONLY}
{{
  "deep_dive": "# Deep Dive: Topic\\n\\n## Advanced pathophysiology\\n...",
  "confidence": 0.80,
  "sources": [],
  "warnings": [],
  "research_areas": ["area 1"]
}}"""

DEEP_DIVE_USER = """Write a Deep Dive for:
**Topic:** {{title}}
**Specialty:** {{specialty}}
{{full_text_block}}"""

HIGH_YIELD_SYSTEM = f"""You are a medical educator. Extract a HIGH-YIELD summary from the supplied study text.

RULES:
- At most 15 key points, each no longer than two sentences.
- Tag points as CRITICAL / HIGH-YIELD / THERAPY / CAUTION.
- Focus on what is examined.

{_JSON_ONLY}
{{
  "high_yield": "# High-Yield: Topic\\n\\n**CRITICAL:** ...",
  "key_points": ["point 1"],
  "confidence": 0.90
}}"""

HIGH_YIELD_USER = """Extract the HIGH-YIELD points from this study text:

**Topic:** {{title}}

**FULL TEXT:**
{{full_text}}"""

FLASHCARDS_SYSTEM = f"""Generate flashcards from a medical study text.

RULES:
- Generate 10 cards from the supplied content.
- Mix card types: definition, mechanism, diagnostics, therapy, differential diagnosis.
- Keep questions short; answers at most three sentences.
- Difficulty 1-3 (1 = basic, 2 = advanced, 3 = board level).

{_JSON_ONLY}
{{
  "flashcards": [
    {{"question": "...", "answer": "...", "difficulty": 2, "tags": ["diagnostics"]}}
  ],
  "confidence": 0.85
}}"""

FLASHCARDS_USER = """Generate 10 flashcards from:
**Topic:** {{title}}

**CONTENT:**
{{full_text}}"""

MCQ_SYSTEM = f"""Generate multiple-choice questions from a medical study text.

RULES:
- Generate 5 questions with 4-5 options (A-E).
- Exactly one correct answer; the other options are plausible distractors.
- Explain why the correct answer is right and the others are not.

{_JSON_ONLY}
{{
  "questions": [
    {{
      "question_text": "...",
      "options": {{"A": "...", "B": "...", "C": "...", "D": "..."}},
      "correct_answer": "B",
      "explanation": "...",
      "difficulty": 2,
      "tags": ["diagnostics"]
    }}
  ],
  "confidence": 0.85
}}"""

MCQ_USER = """Generate 5 multiple-choice questions from:
**Topic:** {{title}}

**CONTENT:**
{{full_text}}"""

REVIEW_SYSTEM = f"""You are an independent medical content reviewer checking AI-generated study material.

Score the content 0-100 for:
1. SAFETY: incorrect dosages, dangerous advice, missing contraindications
2. COMPLETENESS: missing standard sections for the topic
3. ACCURACY: factual errors, outdated guidelines, unsupported claims
4. EDUCATIONAL VALUE: clarity, structure, appropriate depth

{_JSON_ONLY}
{{
  "approved": true,
  "confidence": 0.9,
  "safety_score": 0,
  "completeness_score": 0,
  "accuracy_score": 0,
  "educational_score": 0,
  "overall_score": 0,
  "issues": [{{"severity": "high|medium|low", "category": "dosage|safety|accuracy|completeness|formatting", "description": "...", "suggestion": "..."}}],
  "strengths": ["..."],
  "missing_sections": ["..."]
}}

approved=true ONLY if safety_score >= 80 AND there are no high-severity issues."""

REVIEW_USER = """Review this medical study content:
**Topic:** {{title}}
**Specialty:** {{specialty}}

**CONTENT TO REVIEW:**
{{full_text}}"""


def fill_template(template: str, values: dict[str, Any]) -> str:
  """Substitute ``{{key}}`` markers with values; unknown keys become empty strings."""

  def _replace(match: re.Match[str]) -> str:
    value = values.get(match.group(1))
    if value is None:
      return ""
    return str(value)

  return _PLACEHOLDER_RE.sub(_replace, template).strip()


def build_prompt_values(context: dict[str, Any], *, fulltext_char_limit: int | None) -> dict[str, Any]:
  """Derive template values from a generation context."""
  full_text = context.get("full_text") or ""
  # Downstream modes only need a bounded excerpt of the source text.
  if fulltext_char_limit is not None and len(full_text) > fulltext_char_limit:
    full_text = full_text[:fulltext_char_limit]

  description = context.get("description")
  values = dict(context)
  values["specialty"] = context.get("specialty") or "medicine"
  values["parent_grouping"] = context.get("parent_grouping") or ""
  values["full_text"] = full_text
  values["description_block"] = f"**Description:** {description}" if description else ""
  values["full_text_block"] = f"**Reference text (excerpt):**\n{full_text}" if full_text else ""
  return values
