"""Typed Redis command objects and builders for key, string and hash commands."""

__version__ = "0.1.0"

__all__ = ["base", "keys", "strings"]