"""Collaborator interfaces consumed by the advancement session.

The session receives its character store, catalog, session marks and dice
through these protocols, so tests and alternative backends can supply
their own implementations.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from campaign_companion.engine.dice import DiceExpression
from campaign_companion.models.catalog import HeroicAbility, MagicSchool, Spell
from campaign_companion.models.character import CharacterSnapshot
from campaign_companion.models.mutations import CharacterMutation


@runtime_checkable
class CharacterGateway(Protocol):
    """Reads character snapshots and persists mutations.

    Implementations raise PersistenceError when a mutation cannot be stored
    and MissingDataError when a character does not exist.
    """

    def get_snapshot(self, character_id: str) -> CharacterSnapshot:
        """Return the current state of a character."""
        ...

    def apply_mutation(self, mutation: CharacterMutation) -> None:
        """Persist a single character mutation."""
        ...


@runtime_checkable
class CatalogProvider(Protocol):
    """Read-only catalogs. Implementations raise CatalogError on failure."""

    def fetch_abilities(self) -> list[HeroicAbility]:
        ...

    def fetch_spells(self) -> list[Spell]:
        ...

    def fetch_schools(self) -> list[MagicSchool]:
        ...


@runtime_checkable
class SessionMarks(Protocol):
    """Skills marked during play, used to pre-select skills at session end."""

    def marked_skills(self) -> list[str]:
        """Marked skills in the order they were marked."""
        ...

    def mark_skill(self, skill_name: str) -> None:
        ...

    def clear(self) -> None:
        ...


@runtime_checkable
class AdvancementRoller(Protocol):
    """Produces the random draw for an advancement attempt."""

    def roll_advancement(self, target: int, label: str) -> DiceExpression:
        ...


class MarkedSkills:
    """In-memory SessionMarks: ordered and without duplicates."""

    def __init__(self, skills: Iterable[str] = ()) -> None:
        self._skills: dict[str, None] = dict.fromkeys(skills)

    def marked_skills(self) -> list[str]:
        return list(self._skills)

    def mark_skill(self, skill_name: str) -> None:
        self._skills[skill_name] = None

    def clear(self) -> None:
        self._skills.clear()

    def __len__(self) -> int:
        return len(self._skills)

    def __contains__(self, skill_name: object) -> bool:
        return skill_name in self._skills


__all__ = [
    "AdvancementRoller",
    "CatalogProvider",
    "CharacterGateway",
    "MarkedSkills",
    "SessionMarks",
]
