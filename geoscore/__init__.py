"""Geoscore: brand visibility tracking across AI assistants and search."""

__version__ = "1.0.0"
