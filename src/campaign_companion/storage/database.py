"""SQLite persistence layer for the Campaign Companion.

Provides persistent storage for:
- Character snapshots (the state the advancement session reads and mutates)
- Catalogs of heroic abilities, spells and magic schools

The Database class implements both the CharacterGateway and the
CatalogProvider interfaces, so a session can be wired directly to it.

Storage location: configured by ``CAMPAIGN_COMPANION_DATABASE_PATH``
(default ~/.campaign_companion/companion.db)
"""

from __future__ import annotations

import sqlite3
from collections.abc import Generator, Iterable
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from campaign_companion.core.config import get_settings
from campaign_companion.core.exceptions import CatalogError, MissingDataError, PersistenceError, ValidationError
from campaign_companion.core.logging import get_logger
from campaign_companion.models.catalog import HeroicAbility, MagicSchool, Spell
from campaign_companion.models.character import CharacterSnapshot
from campaign_companion.models.mutations import CharacterMutation, apply_mutation


logger = get_logger(__name__)

_ModelT = TypeVar("_ModelT", bound=BaseModel)

_CATALOG_KINDS: dict[str, type[BaseModel]] = {
    "abilities": HeroicAbility,
    "spells": Spell,
    "schools": MagicSchool,
}

# Retry policy for "database is locked" and similar transient errors
_transient_retry = retry(
    retry=retry_if_exception_type(sqlite3.OperationalError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
    reraise=True,
)


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class CharacterRecord:
    """Stored character row.

    Attributes:
        id: Character id.
        name: Character name.
        snapshot_json: Serialized CharacterSnapshot.
        updated_at: When the character was last written.
    """

    id: str
    name: str
    snapshot_json: str
    updated_at: datetime

    @classmethod
    def from_row(cls, row: tuple[Any, ...]) -> CharacterRecord:
        """Create from database row."""
        return cls(
            id=row[0],
            name=row[1],
            snapshot_json=row[2],
            updated_at=datetime.fromisoformat(row[3]),
        )

    def to_snapshot(self) -> CharacterSnapshot:
        """Parse the stored snapshot."""
        return CharacterSnapshot.model_validate_json(self.snapshot_json)


# =============================================================================
# Database Class
# =============================================================================


class Database:
    """SQLite database for characters and catalogs.

    Manages storage of:
    - Character snapshots, updated through CharacterMutation requests
    - Catalog entries (abilities, spells, schools) as JSON documents
    """

    SCHEMA_VERSION = 1

    def __init__(self, db_path: str | Path | None = None) -> None:
        """Initialize database.

        Args:
            db_path: Path to database file. If None, uses the configured location.
        """
        if db_path is None:
            self.db_path = get_settings().storage.database_path
        else:
            self.db_path = Path(db_path)

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

        logger.info("Database initialized", path=str(self.db_path))

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a database connection with proper cleanup."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS characters (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    snapshot_json TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS catalog_entries (
                    kind TEXT NOT NULL,
                    id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    data_json TEXT NOT NULL,
                    PRIMARY KEY (kind, id)
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_catalog_kind_name
                ON catalog_entries(kind, name)
            """)

            cursor.execute("""
                INSERT OR REPLACE INTO schema_version (version) VALUES (?)
            """, (self.SCHEMA_VERSION,))

    # =========================================================================
    # Character Operations
    # =========================================================================

    @_transient_retry
    def _write_character(self, snapshot: CharacterSnapshot) -> CharacterRecord:
        now = datetime.now()
        snapshot_json = snapshot.model_dump_json()
        with self._get_connection() as conn:
            conn.execute("""
                INSERT INTO characters (id, name, snapshot_json, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    snapshot_json = excluded.snapshot_json,
                    updated_at = excluded.updated_at
            """, (snapshot.id, snapshot.name, snapshot_json, now.isoformat()))
        return CharacterRecord(id=snapshot.id, name=snapshot.name, snapshot_json=snapshot_json, updated_at=now)

    @_transient_retry
    def _read_character(self, character_id: str) -> CharacterRecord | None:
        with self._get_connection() as conn:
            row = conn.execute("""
                SELECT id, name, snapshot_json, updated_at
                FROM characters WHERE id = ?
            """, (character_id,)).fetchone()
        if row:
            return CharacterRecord.from_row(tuple(row))
        return None

    def save_character(self, snapshot: CharacterSnapshot) -> CharacterRecord:
        """Insert or replace a character.

        Raises:
            PersistenceError: If the character cannot be written.
        """
        try:
            record = self._write_character(snapshot)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to save character: {exc}", character_id=snapshot.id) from exc
        logger.info("Saved character", character_id=snapshot.id, name=snapshot.name)
        return record

    def get_character(self, character_id: str) -> CharacterRecord | None:
        """Get a stored character row, or None if absent."""
        try:
            return self._read_character(character_id)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to read character: {exc}", character_id=character_id) from exc

    def get_snapshot(self, character_id: str) -> CharacterSnapshot:
        """Get the current snapshot of a character.

        Raises:
            MissingDataError: If the character does not exist.
            PersistenceError: If the stored data cannot be read.
        """
        record = self.get_character(character_id)
        if record is None:
            raise MissingDataError("Character data not available", details={"character_id": character_id})
        try:
            return record.to_snapshot()
        except PydanticValidationError as exc:
            raise PersistenceError(
                f"Stored character is invalid: {exc.error_count()} error(s)",
                character_id=character_id,
            ) from exc

    def apply_mutation(self, mutation: CharacterMutation) -> None:
        """Apply a mutation to a stored character.

        Raises:
            PersistenceError: If the character is unknown, the mutation is
                invalid, or the write fails.
        """
        record = self.get_character(mutation.character_id)
        if record is None:
            raise PersistenceError("Character not found", character_id=mutation.character_id)
        try:
            updated = apply_mutation(record.to_snapshot(), mutation)
        except (ValidationError, PydanticValidationError) as exc:
            raise PersistenceError(
                f"Cannot apply {mutation.describe()}: {exc}",
                character_id=mutation.character_id,
            ) from exc
        self.save_character(updated)
        logger.info(
            "Applied mutation",
            character_id=mutation.character_id,
            mutation_type=mutation.mutation_type,
            mutation_id=str(mutation.mutation_id),
        )

    def delete_character(self, character_id: str) -> bool:
        """Delete a character.

        Returns:
            True if deleted, False if not found.
        """
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM characters WHERE id = ?", (character_id,))
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Deleted character", character_id=character_id)
        return deleted

    # =========================================================================
    # Catalog Operations
    # =========================================================================

    def _save_catalog(self, kind: str, entries: Iterable[BaseModel]) -> int:
        """Replace all catalog entries of one kind."""
        rows = []
        for index, entry in enumerate(entries):
            entry_id = getattr(entry, "id", None) or f"{kind}-{index}"
            rows.append((kind, str(entry_id), getattr(entry, "name", ""), entry.model_dump_json()))
        try:
            with self._get_connection() as conn:
                conn.execute("DELETE FROM catalog_entries WHERE kind = ?", (kind,))
                conn.executemany("""
                    INSERT INTO catalog_entries (kind, id, name, data_json)
                    VALUES (?, ?, ?, ?)
                """, rows)
        except sqlite3.Error as exc:
            raise CatalogError(f"Failed to save {kind}: {exc}", catalog=kind) from exc
        logger.info("Saved catalog", catalog=kind, count=len(rows))
        return len(rows)

    def _fetch_catalog(self, kind: str, model: type[_ModelT]) -> list[_ModelT]:
        try:
            with self._get_connection() as conn:
                rows = conn.execute("""
                    SELECT data_json FROM catalog_entries
                    WHERE kind = ? ORDER BY name
                """, (kind,)).fetchall()
            return [model.model_validate_json(row[0]) for row in rows]
        except (sqlite3.Error, PydanticValidationError) as exc:
            raise CatalogError(f"Failed to load {kind}: {exc}", catalog=kind) from exc

    def save_abilities(self, abilities: Iterable[HeroicAbility]) -> int:
        return self._save_catalog("abilities", abilities)

    def save_spells(self, spells: Iterable[Spell]) -> int:
        return self._save_catalog("spells", spells)

    def save_schools(self, schools: Iterable[MagicSchool]) -> int:
        return self._save_catalog("schools", schools)

    def fetch_abilities(self) -> list[HeroicAbility]:
        """All heroic abilities, sorted by name."""
        return self._fetch_catalog("abilities", HeroicAbility)

    def fetch_spells(self) -> list[Spell]:
        """All spells, sorted by name."""
        return self._fetch_catalog("spells", Spell)

    def fetch_schools(self) -> list[MagicSchool]:
        """All magic schools, sorted by name."""
        return self._fetch_catalog("schools", MagicSchool)

    def get_catalog_count(self, kind: str) -> int:
        """Number of stored entries of one catalog kind."""
        if kind not in _CATALOG_KINDS:
            raise CatalogError(f"Unknown catalog: {kind}", catalog=kind)
        with self._get_connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM catalog_entries WHERE kind = ?", (kind,)).fetchone()[0]


# =============================================================================
# Singleton Instance
# =============================================================================


_database_instance: Database | None = None


def get_database() -> Database:
    """Get the global database instance.

    Returns:
        Database singleton instance.
    """
    global _database_instance

    if _database_instance is None:
        _database_instance = Database()

    return _database_instance


__all__ = [
    "CharacterRecord",
    "Database",
    "get_database",
]
