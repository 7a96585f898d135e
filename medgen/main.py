from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from medgen import __version__
from medgen.ai.errors import GenerationValidationError, RateLimitExceededError
from medgen.api.routes import batch, cache, generate
from medgen.config import get_settings
from medgen.core.exceptions import generation_validation_exception_handler, global_exception_handler, http_exception_handler, rate_limit_exception_handler, request_validation_exception_handler
from medgen.core.json import PipelineJSONResponse
from medgen.core.lifespan import lifespan
from medgen.core.middleware import RequestLoggingMiddleware

settings = get_settings()

app = FastAPI(title="medgen-engine", version=__version__, default_response_class=PipelineJSONResponse, lifespan=lifespan, docs_url=None, redoc_url=None)

# Only listed origins get CORS headers; browsers block everything else.
app.add_middleware(
  CORSMiddleware,
  allow_origins=list(settings.allowed_origins),
  allow_credentials=True,
  allow_methods=["GET", "POST", "OPTIONS"],
  allow_headers=["content-type", "authorization", "x-user-id"],
  expose_headers=["retry-after", "x-request-id"],
)

app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
app.add_exception_handler(GenerationValidationError, generation_validation_exception_handler)
app.add_exception_handler(RateLimitExceededError, rate_limit_exception_handler)

app.add_middleware(RequestLoggingMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": __version__}


app.include_router(generate.router, prefix="/generate", tags=["generate"])
app.include_router(batch.router, prefix="/batch", tags=["batch"])
app.include_router(cache.router, prefix="/cache", tags=["cache"])
