"""Pipeline data contracts."""
