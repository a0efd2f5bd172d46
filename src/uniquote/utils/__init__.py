"""Utility modules for uniquote."""

from uniquote.utils.clock import new_id, now_ms

__all__ = ["new_id", "now_ms"]
