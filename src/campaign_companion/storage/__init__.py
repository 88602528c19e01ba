"""Storage layer for the Campaign Companion.

Provides SQLite-based persistence for characters and catalogs.
"""

from campaign_companion.storage.database import CharacterRecord, Database, get_database


__all__ = [
    "CharacterRecord",
    "Database",
    "get_database",
]
