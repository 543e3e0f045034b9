"""Shared helpers."""

from .files import atomic_write_text
from .retry import compute_backoff, schedule_retry

__all__ = ["atomic_write_text", "compute_backoff", "schedule_retry"]
