"""AI generation layer: modes, providers, routing and pipeline orchestration."""
