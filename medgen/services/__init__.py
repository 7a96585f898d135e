"""Cache store and rate limiter."""
