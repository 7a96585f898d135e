"""Repository contracts and their Postgres implementations."""
