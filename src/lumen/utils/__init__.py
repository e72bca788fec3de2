"""Host-side utilities."""

from .console import CONSOLE, warn

__all__ = ["CONSOLE", "warn"]
