"""Favorite locations service for the weather app."""

__version__ = "0.1.0"
