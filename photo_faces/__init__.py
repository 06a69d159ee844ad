"""Recurring identity resolution for photo collections."""

__version__ = "0.1.0"
