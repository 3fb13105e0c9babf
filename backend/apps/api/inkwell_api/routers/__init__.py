"""
API router modules.

This package contains all API route handlers organized by domain.
"""

from . import interactions, stats, sync

__all__ = [
    "interactions",
    "stats",
    "sync",
]
