"""Character mutation requests.

The advancement session never edits a character directly. It emits
CharacterMutation requests which a character store validates and applies,
then reads the fresh snapshot back.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from campaign_companion.core.constants import MAX_SKILL_LEVEL, MIN_SKILL_LEVEL
from campaign_companion.core.exceptions import ValidationError
from campaign_companion.models.character import CharacterSnapshot, CharacterSpells, Teacher
from campaign_companion.models.enums import MutationType


class CharacterMutation(BaseModel):
    """A single change to apply to a character.

    ``payload`` structure depends on ``mutation_type``:

    - skill_increase: ``{"skill": str, "level": int}``
    - ability_grant: ``{"ability": str, "allow_duplicate": bool}``
    - spell_grant: ``{"spell": str}``
    - school_grant: ``{"skill": str, "level": int}``
    - study_skill: ``{"skill": str | None}``
    """

    model_config = ConfigDict(frozen=True)

    mutation_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=datetime.now)

    character_id: str = Field(description="Character to modify")
    mutation_type: MutationType
    payload: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def skill_increase(cls, character_id: str, skill: str, level: int) -> CharacterMutation:
        """Set a skill to its new, increased level."""
        return cls(
            character_id=character_id,
            mutation_type=MutationType.SKILL_INCREASE,
            payload={"skill": skill, "level": level},
        )

    @classmethod
    def ability_grant(
        cls,
        character_id: str,
        ability: str,
        *,
        allow_duplicate: bool = False,
    ) -> CharacterMutation:
        """Grant a heroic ability."""
        return cls(
            character_id=character_id,
            mutation_type=MutationType.ABILITY_GRANT,
            payload={"ability": ability, "allow_duplicate": allow_duplicate},
        )

    @classmethod
    def spell_grant(cls, character_id: str, spell: str) -> CharacterMutation:
        """Add a spell to the general spell list."""
        return cls(
            character_id=character_id,
            mutation_type=MutationType.SPELL_GRANT,
            payload={"spell": spell},
        )

    @classmethod
    def school_grant(cls, character_id: str, skill: str, level: int) -> CharacterMutation:
        """Grant a school skill at its starting level."""
        return cls(
            character_id=character_id,
            mutation_type=MutationType.SCHOOL_GRANT,
            payload={"skill": skill, "level": level},
        )

    @classmethod
    def study_skill(cls, character_id: str, skill: str | None) -> CharacterMutation:
        """Set, or clear with None, the skill under study with a teacher."""
        return cls(
            character_id=character_id,
            mutation_type=MutationType.STUDY_SKILL,
            payload={"skill": skill},
        )

    def describe(self) -> str:
        """Short human-readable description for logs and messages."""
        p = self.payload
        if self.mutation_type == MutationType.SKILL_INCREASE:
            return f"{p.get('skill')} -> {p.get('level')}"
        if self.mutation_type == MutationType.ABILITY_GRANT:
            return f"ability {p.get('ability')}"
        if self.mutation_type == MutationType.SPELL_GRANT:
            return f"spell {p.get('spell')}"
        if self.mutation_type == MutationType.SCHOOL_GRANT:
            return f"school skill {p.get('skill')} at {p.get('level')}"
        return f"study {p.get('skill') or 'cleared'}"


def _require(payload: dict[str, Any], key: str) -> Any:
    value = payload.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"Mutation payload is missing '{key}'", field_name=key)
    return value


def _clamp_level(value: Any) -> int:
    try:
        level = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Skill level must be an integer", field_name="level", invalid_value=value) from exc
    return max(MIN_SKILL_LEVEL, min(MAX_SKILL_LEVEL, level))


def apply_mutation(snapshot: CharacterSnapshot, mutation: CharacterMutation) -> CharacterSnapshot:
    """Apply a mutation and return the updated snapshot.

    The input snapshot is left untouched.

    Args:
        snapshot: Current character state.
        mutation: The change to apply.

    Returns:
        A new snapshot with the mutation applied.

    Raises:
        ValidationError: If the mutation targets another character or its
            payload is incomplete.
    """
    if mutation.character_id != snapshot.id:
        raise ValidationError(
            "Mutation targets a different character",
            field_name="character_id",
            invalid_value=mutation.character_id,
        )

    payload = mutation.payload

    if mutation.mutation_type in (MutationType.SKILL_INCREASE, MutationType.SCHOOL_GRANT):
        skill = _require(payload, "skill")
        level = _clamp_level(_require(payload, "level"))
        update: dict[str, Any] = {"skill_levels": {**snapshot.skill_levels, skill: level}}
        if mutation.mutation_type == MutationType.SKILL_INCREASE and snapshot.study_skill == skill:
            # Studying ends once the studied skill goes up
            update["teacher"] = None
        return snapshot.model_copy(update=update)

    if mutation.mutation_type == MutationType.ABILITY_GRANT:
        ability = _require(payload, "ability")
        if snapshot.has_ability(ability) and not payload.get("allow_duplicate", False):
            return snapshot
        return snapshot.model_copy(update={"heroic_abilities": [*snapshot.heroic_abilities, ability]})

    if mutation.mutation_type == MutationType.SPELL_GRANT:
        spell = _require(payload, "spell")
        if snapshot.knows_spell(spell):
            return snapshot
        spells = CharacterSpells(
            general=[*snapshot.spells.general, spell],
            school=snapshot.spells.school,
        )
        return snapshot.model_copy(update={"spells": spells})

    if mutation.mutation_type == MutationType.STUDY_SKILL:
        skill = payload.get("skill")
        teacher = Teacher(skill_under_study=skill) if skill else None
        return snapshot.model_copy(update={"teacher": teacher})

    raise ValidationError(
        f"Unknown mutation type: {mutation.mutation_type}",
        field_name="mutation_type",
        invalid_value=mutation.mutation_type,
    )


__all__ = [
    "CharacterMutation",
    "apply_mutation",
]
