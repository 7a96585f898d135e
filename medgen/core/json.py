"""JSON response rendering for cost and timestamp values."""

from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from fastapi.responses import JSONResponse


class PipelineJSONEncoder(json.JSONEncoder):
  """Encode Decimal costs as numbers and datetimes as ISO-8601 strings."""

  def default(self, obj: Any) -> Any:
    if isinstance(obj, Decimal):
      return int(obj) if obj % 1 == 0 else float(obj)
    if isinstance(obj, datetime | date):
      return obj.isoformat()
    return super().default(obj)


class PipelineJSONResponse(JSONResponse):
  """JSONResponse that understands ledger and job values."""

  def render(self, content: Any) -> bytes:
    return json.dumps(content, ensure_ascii=False, allow_nan=False, indent=None, separators=(",", ":"), cls=PipelineJSONEncoder).encode("utf-8")
