"""Utility functions for the infrastructure manager."""

from .conditions import get_condition, update_condition
from .context import correlation_fields, get_correlation_id, with_correlation_id
from .errors import is_conflict, is_not_found, sanitize_exception
from .events import emit_event

__all__ = [
    "update_condition",
    "get_condition",
    "emit_event",
    "is_conflict",
    "is_not_found",
    "sanitize_exception",
    "get_correlation_id",
    "with_correlation_id",
    "correlation_fields",
]
