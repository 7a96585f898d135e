"""Domain models for queued generation jobs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

JobStatus = Literal["pending", "processing", "completed", "failed"]
JOB_STATUSES: tuple[JobStatus, ...] = ("pending", "processing", "completed", "failed")
TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed"})

# error_message column width.
ERROR_MESSAGE_LIMIT = 500


@dataclass
class GenerationJobRecord:
  """One topic submitted for batch generation."""

  id: str
  topic_id: str
  requested_modes: list[str]
  status: JobStatus
  priority: int
  created_at: datetime
  submitted_by: str | None = None
  started_at: datetime | None = None
  completed_at: datetime | None = None
  result: dict[str, Any] | None = None
  error_message: str | None = None

  def summary(self) -> dict[str, Any]:
    """Public view used by the batch status endpoint."""
    return {
      "id": self.id,
      "topic_id": self.topic_id,
      "requested_modes": list(self.requested_modes),
      "status": self.status,
      "priority": self.priority,
      "submitted_by": self.submitted_by,
      "created_at": self.created_at,
      "started_at": self.started_at,
      "completed_at": self.completed_at,
      "error_message": self.error_message,
    }


@dataclass(frozen=True)
class NewJob:
  topic_id: str
  requested_modes: list[str]
  priority: int
  submitted_by: str | None = None


def truncate_error(message: str | None) -> str | None:
  if message is None:
    return None
  return message[:ERROR_MESSAGE_LIMIT]
