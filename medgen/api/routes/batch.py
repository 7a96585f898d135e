import logging
from typing import Any

from fastapi import APIRouter, Depends

from medgen.api.deps import enforce_rate_limit, get_queue_manager
from medgen.api.models import BatchRequest, EnqueueAction, ProcessAction
from medgen.config import Settings, get_settings
from medgen.jobs.queue import QueueManager

router = APIRouter()
logger = logging.getLogger("medgen.api.routes.batch")


@router.post("")
async def batch(  # noqa: B008
  payload: BatchRequest,
  identity: str = Depends(enforce_rate_limit),  # noqa: B008
  settings: Settings = Depends(get_settings),  # noqa: B008
  queue: QueueManager = Depends(get_queue_manager),  # noqa: B008
) -> dict[str, Any]:
  """Enqueue topics, drain pending jobs, or report queue status."""
  action = payload.root

  if isinstance(action, EnqueueAction):
    jobs = await queue.enqueue(action.topic_ids, action.modes, submitted_by=identity, priority_base=action.priority_base)
    return {"queued": len(jobs), "items": [job.summary() for job in jobs]}

  if isinstance(action, ProcessAction):
    limit = action.limit if action.limit is not None else settings.drain_default_limit
    results = await queue.drain(limit)
    logger.info("Drained %s generation jobs for identity=%s", len(results), identity)
    return {"processed": len(results), "results": [result.as_dict() for result in results]}

  return await queue.status()
