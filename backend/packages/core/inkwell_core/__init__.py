"""
Inkwell Core Package.

This package contains the interaction engine: actor resolution, the
interaction store, rollup aggregation, login sync and stats queries.
"""

__version__ = "0.1.0"

from .logging_config import get_logger, init_logging

__all__ = ["init_logging", "get_logger"]
