import logging
from typing import Any

from fastapi import APIRouter, Depends

from medgen.api.deps import enforce_rate_limit, get_cache_store
from medgen.api.models import CacheClearAction, CachePurgeAction, CacheRequest
from medgen.services.cache import CacheStore

router = APIRouter()
logger = logging.getLogger("medgen.api.routes.cache")


@router.post("")
async def cache_admin(  # noqa: B008
  payload: CacheRequest,
  identity: str = Depends(enforce_rate_limit),  # noqa: B008
  cache: CacheStore = Depends(get_cache_store),  # noqa: B008
) -> dict[str, Any]:
  """Report cache statistics or evict entries."""
  action = payload.root

  if isinstance(action, CacheClearAction):
    mode = action.mode.value if action.mode is not None else None
    deleted = await cache.clear(mode)
    logger.info("Cache clear mode=%s identity=%s deleted=%s", mode, identity, deleted)
    return {"deleted": deleted, "mode": mode}

  if isinstance(action, CachePurgeAction):
    deleted = await cache.purge_expired()
    logger.info("Cache purge identity=%s deleted=%s", identity, deleted)
    return {"deleted": deleted}

  return await cache.stats()
