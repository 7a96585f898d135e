"""Generation job queue."""
