"""inkpress: topic-to-commit publication pipeline for a small blog team."""

__version__ = "0.1.0"
