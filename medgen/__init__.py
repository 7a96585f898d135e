"""Generation pipeline service for medical exam study content."""

__version__ = "0.1.0"
