"""Utility helpers."""
from .background import BackgroundTasks
from .time_utils import utcnow, ensure_utc, format_timestamp

__all__ = ["BackgroundTasks", "utcnow", "ensure_utc", "format_timestamp"]
