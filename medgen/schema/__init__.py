"""SQLAlchemy table models."""
