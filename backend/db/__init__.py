"""
Database Layer
Persistence and storage operations.
"""

from .sqlite import SQLiteStorage, get_storage

__all__ = ["SQLiteStorage", "get_storage"]
