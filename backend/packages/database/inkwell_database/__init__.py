"""
Inkwell Database Package.

SQLAlchemy models and session management for interaction storage.
"""

from .models import Base
from .session import get_session, get_session_context, init_database

__all__ = ["Base", "get_session", "get_session_context", "init_database"]
