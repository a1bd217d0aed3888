"""
Database models for the link store.

Cached copies of these rows live in the key-value store; the table here is
the authoritative state.
"""

from .link import Link

__all__ = ["Link"]
