import logging
from typing import Any

from fastapi import APIRouter, Depends

from medgen.ai.generation import GenerationService
from medgen.api.deps import enforce_rate_limit, get_generation_service
from medgen.api.models import GenerateRequest

router = APIRouter()
logger = logging.getLogger("medgen.api.routes.generate")


@router.post("")
async def generate(  # noqa: B008
  payload: GenerateRequest,
  identity: str = Depends(enforce_rate_limit),  # noqa: B008
  service: GenerationService = Depends(get_generation_service),  # noqa: B008
) -> dict[str, Any]:
  """Generate one mode for a topic context and return the canonical result."""
  result = await service.generate(payload.mode, payload.context.to_context(), model_override=payload.model_override, identity=identity)
  logger.info("Generated mode=%s identity=%s cache_hit=%s model=%s", payload.mode.value, identity, result.metadata.cache_hit, result.metadata.model)
  return result.model_dump(mode="json")
