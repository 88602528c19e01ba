"""Pytest configuration and shared fixtures.

This module provides common fixtures and configuration for all tests
in the Campaign Companion test suite: sample characters and catalogs,
in-memory collaborators for the advancement session, and a scripted
dice roller.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pytest

from campaign_companion.core.exceptions import CatalogError, MissingDataError, PersistenceError
from campaign_companion.engine.advancement import AdvancementSession
from campaign_companion.engine.dice import DiceExpression, DiceRoller
from campaign_companion.engine.ports import MarkedSkills
from campaign_companion.models.catalog import HeroicAbility, MagicSchool, Spell
from campaign_companion.models.character import CharacterSnapshot
from campaign_companion.models.mutations import CharacterMutation, apply_mutation
from campaign_companion.storage.database import Database


if TYPE_CHECKING:
    from collections.abc import Generator


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Reset the settings cache before and after each test."""
    from campaign_companion.core.config import clear_settings_cache

    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def mock_env_vars(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> dict[str, str]:
    """Set up mock environment variables for testing.

    Returns:
        Dictionary of environment variables that were set.
    """
    env_vars = {
        "CAMPAIGN_COMPANION_DEBUG": "true",
        "CAMPAIGN_COMPANION_LOG_LEVEL": "DEBUG",
        "CAMPAIGN_COMPANION_DATABASE_PATH": str(tmp_path / "env.db"),
        "CAMPAIGN_COMPANION_ADVANCEMENT_DIE_EXPRESSION": "1d20",
    }
    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)
    return env_vars


# =============================================================================
# Collaborator Doubles
# =============================================================================


class InMemoryGateway:
    """CharacterGateway backed by a dict, applying mutations for real."""

    def __init__(self, *characters: CharacterSnapshot) -> None:
        self.characters = {c.id: c for c in characters}
        self.mutations: list[CharacterMutation] = []
        self.fail_mutations = False
        self.fail_reads = False

    def get_snapshot(self, character_id: str) -> CharacterSnapshot:
        if self.fail_reads:
            raise MissingDataError("Character data not available")
        try:
            return self.characters[character_id]
        except KeyError:
            raise MissingDataError("Character data not available") from None

    def apply_mutation(self, mutation: CharacterMutation) -> None:
        if self.fail_mutations:
            raise PersistenceError("Store unavailable", character_id=mutation.character_id)
        self.mutations.append(mutation)
        current = self.characters[mutation.character_id]
        self.characters[mutation.character_id] = apply_mutation(current, mutation)


class StaticCatalog:
    """CatalogProvider serving fixed lists."""

    def __init__(
        self,
        abilities: list[HeroicAbility],
        spells: list[Spell],
        schools: list[MagicSchool],
    ) -> None:
        self.abilities = abilities
        self.spells = spells
        self.schools = schools
        self.fail = False
        self.calls: list[str] = []

    def _serve(self, name: str, items: list[Any]) -> list[Any]:
        self.calls.append(name)
        if self.fail:
            raise CatalogError(f"Failed to load {name}", catalog=name)
        return list(items)

    def fetch_abilities(self) -> list[HeroicAbility]:
        return self._serve("abilities", self.abilities)

    def fetch_spells(self) -> list[Spell]:
        return self._serve("spells", self.spells)

    def fetch_schools(self) -> list[MagicSchool]:
        return self._serve("schools", self.schools)


class ScriptedRoller:
    """AdvancementRoller returning predetermined totals."""

    def __init__(self, *totals: int) -> None:
        self.totals = list(totals)
        self.requests: list[tuple[int, str]] = []

    def roll_advancement(self, target: int, label: str) -> DiceExpression:
        self.requests.append((target, label))
        total = self.totals.pop(0)
        return DiceExpression(expression="1d20", total=total, dice=[total], modifier=0, label=label)


# =============================================================================
# Model Fixtures
# =============================================================================


@pytest.fixture
def make_character() -> Callable[..., CharacterSnapshot]:
    """Factory for character snapshots with overridable fields.

    Attributes default to 10 across the board; pass ``attributes`` to
    override individual values.
    """

    def factory(**overrides: Any) -> CharacterSnapshot:
        attributes = {"STR": 10, "AGL": 10, "INT": 10, "CHA": 10, "CON": 10, "WIL": 10}
        attributes.update(overrides.pop("attributes", {}))
        data: dict[str, Any] = {
            "id": "char-1",
            "name": "Tova",
            "kin": "Human",
            "profession": "Hunter",
            "attributes": attributes,
        }
        data.update(overrides)
        return CharacterSnapshot.model_validate(data)

    return factory


@pytest.fixture
def sample_schools() -> list[MagicSchool]:
    """The three schools of magic."""
    return [
        MagicSchool(id="1", name="Elementalism"),
        MagicSchool(id="2", name="Animism"),
        MagicSchool(id="3", name="Mentalism"),
    ]


@pytest.fixture
def mage(make_character: Callable[..., CharacterSnapshot]) -> CharacterSnapshot:
    """An elementalist with INT 13, WIL 12 who knows Light."""
    return make_character(
        id="mage-1",
        name="Ilse",
        profession="Mage",
        attributes={"INT": 13, "WIL": 12},
        magic_school_id=1,
        trained_skills=["Elementalism"],
        spells={"general": ["Light"], "school": {"name": "Elementalism", "spells": ["Fire Bolt"]}},
    )


@pytest.fixture
def sample_abilities() -> list[HeroicAbility]:
    """A small heroic ability catalog."""
    return [
        HeroicAbility(id="a1", name="Berserker", requirement="Axes 12"),
        HeroicAbility(id="a2", name="Catlike", requirement={"Acrobatics": 12}),
        HeroicAbility(id="a3", name="Focused", requirement="WIL 12"),
        HeroicAbility(id="a4", name="Magic Talent"),
        HeroicAbility(id="a5", name="Dragonslayer", requirement=None),
        HeroicAbility(id="a6", name="Robust", kin="Dwarf"),
        HeroicAbility(id="a7", name="Battle Cry", profession="Fighter"),
    ]


@pytest.fixture
def sample_spells() -> list[Spell]:
    """A small spell catalog mixing both prerequisite grammars."""
    return [
        Spell(id="s1", name="Light", rank=0),
        Spell(id="s2", name="Fireball", school_id="1", rank=2, prerequisite="Elementalism AND Light"),
        Spell(id="s3", name="Frost Wall", school_id="1", rank=2, prerequisite="Animism AND Light"),
        Spell(
            id="s4",
            name="Lightning Flash",
            school_id="1",
            rank=1,
            prerequisite='{"type": "attribute", "name": "INT", "value": 14}',
        ),
        Spell(id="s5", name="Protector", rank=1, prerequisite="ANY SCHOOL OF MAGIC"),
    ]


# =============================================================================
# Session Fixtures
# =============================================================================


@pytest.fixture
def catalog(
    sample_abilities: list[HeroicAbility],
    sample_spells: list[Spell],
    sample_schools: list[MagicSchool],
) -> StaticCatalog:
    """Catalog provider over the sample catalogs."""
    return StaticCatalog(sample_abilities, sample_spells, sample_schools)


@pytest.fixture
def marks() -> MarkedSkills:
    """Empty session marks."""
    return MarkedSkills()


@pytest.fixture
def dice_roller() -> DiceRoller:
    """A seeded d20-backed dice roller."""
    return DiceRoller(die_expression="1d20", seed=42)


@pytest.fixture
def make_roller() -> type[ScriptedRoller]:
    """The scripted roller class; call it with the totals to return."""
    return ScriptedRoller


@pytest.fixture
def make_session(
    catalog: StaticCatalog,
    marks: MarkedSkills,
) -> Callable[..., tuple[AdvancementSession, InMemoryGateway]]:
    """Factory building a session around a character and in-memory gateway."""

    def factory(character: CharacterSnapshot, **kwargs: Any) -> tuple[AdvancementSession, InMemoryGateway]:
        gateway = InMemoryGateway(character)
        session = AdvancementSession(
            character.id,
            gateway=gateway,
            catalog=kwargs.pop("catalog", catalog),
            marks=kwargs.pop("marks", marks),
            **kwargs,
        )
        return session, gateway

    return factory


# =============================================================================
# Storage Fixtures
# =============================================================================


@pytest.fixture
def database(tmp_path: Path) -> Database:
    """A fresh SQLite database in a temporary directory."""
    return Database(tmp_path / "companion.db")
