import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from medgen.core.database import dispose_engine
from medgen.core.logging import initialize_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging after uvicorn starts and release the engine on shutdown."""
  from medgen.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("medgen.core.lifespan")

  initialize_logging(settings)
  logger.info("Startup complete - environment=%s default_provider=%s", settings.environment, settings.default_provider)
  if not settings.pg_dsn:
    logger.warning("MEDGEN_PG_DSN is not set; /batch and cache persistence are unavailable.")

  try:
    yield
  finally:
    await dispose_engine()
    logger.info("Shutdown complete.")
