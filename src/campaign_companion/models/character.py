"""Character snapshot consumed by the advancement core.

The snapshot is read-only: the advancement session never edits it in place.
Changes are expressed as CharacterMutation requests, and a fresh snapshot is
read back from the character store after each one.
"""

from __future__ import annotations

import json
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from campaign_companion.core.logging import get_logger
from campaign_companion.models.enums import Attribute


logger = get_logger(__name__)


AttributeScore = Annotated[int, Field(ge=1, le=18, description="Attribute value (1-18)")]


class Teacher(BaseModel):
    """Record of a skill being studied with a teacher."""

    model_config = ConfigDict(frozen=True)

    skill_under_study: str | None = Field(default=None, description="Skill currently under study")


class SchoolSpells(BaseModel):
    """Spells learned through the character's magic school."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str | None = Field(default=None, description="School name, if recorded")
    spells: list[str] = Field(default_factory=list)


class CharacterSpells(BaseModel):
    """A character's known spells, split into general and school lists."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    general: list[str] = Field(default_factory=list)
    school: SchoolSpells | None = Field(default=None)

    @field_validator("general", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    def all_names(self) -> list[str]:
        """All known spell names, general first, without duplicates."""
        names = list(self.general)
        if self.school is not None:
            names.extend(self.school.spells)
        return list(dict.fromkeys(names))


class CharacterSnapshot(BaseModel):
    """Point-in-time view of a character.

    Attributes:
        id: Character identifier in the character store.
        name: Character name.
        kin: Kin (used to filter heroic abilities).
        profession: Profession (used to filter heroic abilities).
        attributes: All six attribute values.
        skill_levels: Explicit skill levels; authoritative when present.
        trained_skills: Skills the character is trained in.
        heroic_abilities: Heroic abilities held. A list, since some abilities
            can be held more than once.
        spells: Known spells.
        magic_school_id: Catalog id of the character's magic school, if any.
        teacher: Current teacher study record, if any.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(description="Character id")
    name: str = Field(default="", description="Character name")
    kin: str | None = Field(default=None)
    profession: str | None = Field(default=None)

    attributes: dict[Attribute, AttributeScore]
    skill_levels: dict[str, int] = Field(default_factory=dict)
    trained_skills: list[str] = Field(default_factory=list)
    heroic_abilities: list[str] = Field(default_factory=list)
    spells: CharacterSpells = Field(default_factory=CharacterSpells)
    magic_school_id: str | None = Field(default=None)
    teacher: Teacher | None = Field(default=None)

    @field_validator("attributes", mode="before")
    @classmethod
    def normalize_attribute_keys(cls, v: Any) -> Any:
        """Accept attribute codes in any case ('str', 'Int', ...)."""
        if isinstance(v, dict):
            return {str(k).strip().upper(): val for k, val in v.items()}
        return v

    @field_validator("skill_levels", mode="before")
    @classmethod
    def parse_skill_levels(cls, v: Any) -> dict[str, int]:
        """Parse skill levels from a mapping or a JSON-encoded mapping.

        Entries whose value is not numeric are dropped.
        """
        if v is None:
            return {}
        if isinstance(v, str):
            try:
                v = json.loads(v)
            except json.JSONDecodeError:
                logger.warning("Unparseable skill_levels JSON", raw=v[:80])
                return {}
            if not isinstance(v, dict):
                return {}
        if isinstance(v, dict):
            cleaned: dict[str, int] = {}
            for key, value in v.items():
                try:
                    cleaned[str(key)] = int(float(value))
                except (TypeError, ValueError):
                    continue
            return cleaned
        return v

    @field_validator("trained_skills", "heroic_abilities", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("magic_school_id", mode="before")
    @classmethod
    def stringify_school_id(cls, v: Any) -> Any:
        """School ids may be numeric in the catalog."""
        if v is None or v == "":
            return None
        return str(v)

    @model_validator(mode="after")
    def require_all_attributes(self) -> CharacterSnapshot:
        """Every attribute must be present."""
        missing = [a.value for a in Attribute if a not in self.attributes]
        if missing:
            raise ValueError(f"missing attributes: {', '.join(missing)}")
        return self

    # =========================================================================
    # Lookups
    # =========================================================================

    @property
    def has_magic_school(self) -> bool:
        """Whether the character belongs to a magic school."""
        return self.magic_school_id is not None

    @property
    def study_skill(self) -> str | None:
        """The skill currently being studied with a teacher."""
        if self.teacher is None:
            return None
        return self.teacher.skill_under_study

    def attribute_value(self, name: str | Attribute) -> int | None:
        """Attribute value by code, case-insensitive."""
        attribute = name if isinstance(name, Attribute) else Attribute.parse(name)
        if attribute is None:
            return None
        return self.attributes.get(attribute)

    def skill_level_entry(self, name: str) -> int | None:
        """Explicit skill level by name, case-insensitive.

        An exact match wins over a case-insensitive one.
        """
        if name in self.skill_levels:
            return self.skill_levels[name]
        wanted = name.strip().upper()
        for skill, level in self.skill_levels.items():
            if skill.upper() == wanted:
                return level
        return None

    def is_trained(self, skill_name: str) -> bool:
        """Whether the character is trained in a skill."""
        return skill_name in self.trained_skills

    def known_spell_names(self) -> set[str]:
        """Upper-cased names of every known spell."""
        return {name.upper() for name in self.spells.all_names()}

    def knows_spell(self, spell_name: str) -> bool:
        """Whether the spell is known, case-insensitive."""
        return spell_name.upper() in self.known_spell_names()

    def ability_count(self, ability_name: str) -> int:
        """How many copies of a heroic ability the character holds."""
        wanted = ability_name.upper()
        return sum(1 for ability in self.heroic_abilities if ability.upper() == wanted)

    def has_ability(self, ability_name: str) -> bool:
        """Whether the character holds a heroic ability."""
        return self.ability_count(ability_name) > 0


__all__ = [
    "AttributeScore",
    "Teacher",
    "SchoolSpells",
    "CharacterSpells",
    "CharacterSnapshot",
]
