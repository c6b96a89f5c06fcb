"""Core utilities package."""

from .logging import get_logger, get_logger_with_context, log_event, setup_logging

__all__ = [
    "setup_logging",
    "get_logger",
    "get_logger_with_context",
    "log_event",
]
