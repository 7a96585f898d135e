"""Unit tests for API exception sanitization behavior."""

from __future__ import annotations

from medgen.core.exceptions import _error_payload, _sanitize_validation_errors


def test_sanitize_validation_errors_removes_input_and_serializes_exception_ctx() -> None:
  """Ensure validation errors stay JSON-serializable and redact raw request payloads."""
  errors = [
    {
      "type": "value_error",
      "loc": ("body", "mode"),
      "msg": "Value error, Unsupported mode 'podcast'.",
      "input": {"mode": "podcast", "context": {"title": "Sepsis"}},
      "url": "https://errors.pydantic.dev/2/v/value_error",
      "ctx": {"error": ValueError("Unsupported mode 'podcast'."), "input": "podcast"},
    }
  ]
  sanitized = _sanitize_validation_errors(errors)
  assert "input" not in sanitized[0]
  assert "url" not in sanitized[0]
  assert sanitized[0]["loc"] == ["body", "mode"]
  assert sanitized[0]["ctx"]["error"] == "ValueError: Unsupported mode 'podcast'."
  assert "input" not in sanitized[0]["ctx"]


def test_error_payload_omits_missing_request_id() -> None:
  assert _error_payload("Too Many Requests") == {"detail": "Too Many Requests"}
  assert _error_payload("Too Many Requests", request_id="abc", retryAfter=5) == {"detail": "Too Many Requests", "requestId": "abc", "retryAfter": 5}
