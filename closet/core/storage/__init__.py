"""
Persistent Storage Module.

Provides SQLite-backed persistence for:
- Per-user wishlists
- Per-user search history
"""

from closet.core.storage.sqlite_adapter import SQLiteAdapter
from closet.core.storage.preferences import PreferenceStore

__all__ = ["SQLiteAdapter", "PreferenceStore"]
