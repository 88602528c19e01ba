"""Catalog definitions: heroic abilities, spells and magic schools.

Catalog rows are read-only for the duration of an advancement session.
"""

from __future__ import annotations

from functools import cached_property
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from campaign_companion.models.prerequisite import ParsedPrerequisite, parse_prerequisite


AbilityRequirement = str | dict[str, int | None] | None
"""Either ``"NAME N"`` or a mapping of name to minimum value."""


class HeroicAbility(BaseModel):
    """A heroic ability from the catalog.

    Attributes:
        id: Catalog id.
        name: Ability name.
        description: Rules text.
        willpower_cost: Willpower points to activate, if any.
        requirement: Attribute/skill requirement, if any.
        kin: Restricts the ability to one kin.
        profession: Restricts the ability to one profession.
    """

    model_config = ConfigDict(extra="ignore")

    id: str | None = Field(default=None)
    name: str
    description: str = Field(default="")
    willpower_cost: int | None = Field(default=None)
    requirement: AbilityRequirement = Field(default=None)
    kin: str | None = Field(default=None)
    profession: str | None = Field(default=None)

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, v: Any) -> Any:
        """Catalog ids may be numeric."""
        return v if v is None else str(v)

    @field_validator("kin", "profession", mode="before")
    @classmethod
    def blank_as_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class MagicSchool(BaseModel):
    """A school of magic."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    description: str = Field(default="")

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, v: Any) -> Any:
        return str(v)


class Spell(BaseModel):
    """A spell from the catalog.

    ``prerequisite`` holds the raw text; ``parsed_prerequisite`` parses it
    once and caches the result.
    """

    model_config = ConfigDict(extra="ignore")

    id: str | None = Field(default=None)
    name: str
    description: str = Field(default="")
    school_id: str | None = Field(default=None, description="None for general spells")
    rank: int | None = Field(default=None)
    casting_time: str | None = Field(default=None)
    range: str | None = Field(default=None)
    duration: str | None = Field(default=None)
    willpower_cost: int | None = Field(default=None)
    prerequisite: str | None = Field(default=None)
    casting_requirement: str | None = Field(default=None)

    @field_validator("id", "school_id", mode="before")
    @classmethod
    def stringify_ids(cls, v: Any) -> Any:
        if v is None or v == "":
            return None
        return str(v)

    @cached_property
    def parsed_prerequisite(self) -> ParsedPrerequisite:
        """The prerequisite, parsed once."""
        return parse_prerequisite(self.prerequisite)

    @property
    def is_general(self) -> bool:
        """Whether the spell belongs to no school."""
        return self.school_id is None


__all__ = [
    "AbilityRequirement",
    "HeroicAbility",
    "MagicSchool",
    "Spell",
]
