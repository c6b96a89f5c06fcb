"""API endpoints."""

from . import admission, health

__all__ = ["admission", "health"]
