"""Influence scoring and refresh pipeline for soccer players."""

__version__ = "0.1.0"
