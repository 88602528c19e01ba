"""Skill table and skill-level resolution.

A skill's level is its explicit entry in ``skill_levels`` when one exists.
Otherwise it is derived from the governing attribute's base chance, doubled
for trained skills.

Example:
    >>> get_base_chance(14)
    6
"""

from __future__ import annotations

from dataclasses import dataclass

from campaign_companion.core.constants import (
    BASE_CHANCE_MAX,
    BASE_CHANCE_STEPS,
    MAX_SKILL_LEVEL,
    TRAINED_SKILL_MULTIPLIER,
)
from campaign_companion.core.exceptions import UnknownSkillError
from campaign_companion.core.logging import get_logger
from campaign_companion.models.character import CharacterSnapshot
from campaign_companion.models.enums import Attribute


logger = get_logger(__name__)


# =============================================================================
# Skill Table
# =============================================================================

BASE_SKILLS: dict[str, Attribute] = {
    "Acrobatics": Attribute.AGL,
    "Awareness": Attribute.INT,
    "Bartering": Attribute.CHA,
    "Beast Lore": Attribute.INT,
    "Bluffing": Attribute.CHA,
    "Bushcraft": Attribute.INT,
    "Crafting": Attribute.STR,
    "Evade": Attribute.AGL,
    "Healing": Attribute.INT,
    "Hunting & Fishing": Attribute.AGL,
    "Languages": Attribute.INT,
    "Myths & Legends": Attribute.INT,
    "Performance": Attribute.CHA,
    "Persuasion": Attribute.CHA,
    "Riding": Attribute.AGL,
    "Seamanship": Attribute.INT,
    "Sleight of Hand": Attribute.AGL,
    "Sneaking": Attribute.AGL,
    "Spot Hidden": Attribute.INT,
    "Swimming": Attribute.AGL,
    # Weapon skills
    "Axes": Attribute.STR,
    "Bows": Attribute.AGL,
    "Brawling": Attribute.STR,
    "Crossbows": Attribute.AGL,
    "Hammers": Attribute.STR,
    "Knives": Attribute.AGL,
    "Slings": Attribute.AGL,
    "Spears": Attribute.STR,
    "Staves": Attribute.AGL,
    "Swords": Attribute.STR,
}
"""Mundane skills every character has, with their governing attribute."""

MAGIC_SCHOOL_SKILLS: dict[str, Attribute] = {
    "Animism": Attribute.WIL,
    "Elementalism": Attribute.WIL,
    "Mentalism": Attribute.WIL,
}
"""School skills, listed only for characters with a magic school."""

SKILL_ATTRIBUTES: dict[str, Attribute] = {**BASE_SKILLS, **MAGIC_SCHOOL_SKILLS}

_SKILLS_BY_UPPER_NAME: dict[str, str] = {name.upper(): name for name in SKILL_ATTRIBUTES}


# =============================================================================
# Resolution
# =============================================================================


def get_base_chance(attribute_value: int) -> int:
    """Base chance for an attribute value.

    Args:
        attribute_value: The governing attribute's value.

    Returns:
        3 for values up to 5, then 4, 5, 6 and 7 above 15.
    """
    for upper_bound, chance in BASE_CHANCE_STEPS:
        if attribute_value <= upper_bound:
            return chance
    return BASE_CHANCE_MAX


def canonical_skill_name(skill_name: str) -> str | None:
    """The table spelling of a skill name, matched case-insensitively."""
    if skill_name in SKILL_ATTRIBUTES:
        return skill_name
    return _SKILLS_BY_UPPER_NAME.get(skill_name.strip().upper())


def get_skill_attribute(skill_name: str) -> Attribute | None:
    """Governing attribute of a skill, or None when the skill is unmapped."""
    canonical = canonical_skill_name(skill_name)
    if canonical is None:
        return None
    return SKILL_ATTRIBUTES[canonical]


def is_school_skill(skill_name: str) -> bool:
    """Whether a skill is one of the magic school skills."""
    return canonical_skill_name(skill_name) in MAGIC_SCHOOL_SKILLS


def lookup_skill_level(character: CharacterSnapshot, skill_name: str) -> int | None:
    """Current level of a skill, or None when it cannot be determined.

    Args:
        character: The character to inspect.
        skill_name: Skill name, matched case-insensitively.

    Returns:
        The explicit level if present, else the derived level for a mapped
        skill, else None.
    """
    explicit = character.skill_level_entry(skill_name)
    if explicit is not None:
        return explicit

    canonical = canonical_skill_name(skill_name)
    if canonical is None:
        return None

    base = get_base_chance(character.attributes[SKILL_ATTRIBUTES[canonical]])
    if character.is_trained(canonical) or character.is_trained(skill_name):
        return base * TRAINED_SKILL_MULTIPLIER
    return base


def resolve_skill_level(character: CharacterSnapshot, skill_name: str) -> int:
    """Current level of a skill.

    Raises:
        UnknownSkillError: If the skill has no explicit level and no
            governing attribute.
    """
    level = lookup_skill_level(character, skill_name)
    if level is None:
        logger.warning("Unmapped skill has no level", skill=skill_name, character_id=character.id)
        raise UnknownSkillError(f"No governing attribute for skill '{skill_name}'", skill_name=skill_name)
    return level


# =============================================================================
# Skill Listing
# =============================================================================


@dataclass(frozen=True)
class SkillInfo:
    """One row of a character's skill list."""

    name: str
    attribute: Attribute
    level: int
    is_trained: bool

    @property
    def at_max(self) -> bool:
        return self.level >= MAX_SKILL_LEVEL


def character_skill_info(character: CharacterSnapshot) -> list[SkillInfo]:
    """List every skill the character can advance, sorted by name.

    Base skills, trained skills and skills with an explicit level are
    included; school skills only for characters with a magic school.
    Unmapped names are logged and left out.
    """
    names: dict[str, None] = dict.fromkeys(character.trained_skills)
    names.update(dict.fromkeys(character.skill_levels))
    names.update(dict.fromkeys(BASE_SKILLS))
    if character.has_magic_school:
        names.update(dict.fromkeys(MAGIC_SCHOOL_SKILLS))

    infos: dict[str, SkillInfo] = {}
    for name in names:
        canonical = canonical_skill_name(name)
        if canonical is None:
            logger.warning("Skipping unmapped skill", skill=name, character_id=character.id)
            continue
        if canonical in infos:
            continue
        infos[canonical] = SkillInfo(
            name=canonical,
            attribute=SKILL_ATTRIBUTES[canonical],
            level=resolve_skill_level(character, canonical),
            is_trained=character.is_trained(canonical),
        )

    return sorted(infos.values(), key=lambda info: info.name.lower())


__all__ = [
    "BASE_SKILLS",
    "MAGIC_SCHOOL_SKILLS",
    "SKILL_ATTRIBUTES",
    "SkillInfo",
    "canonical_skill_name",
    "character_skill_info",
    "get_base_chance",
    "get_skill_attribute",
    "is_school_skill",
    "lookup_skill_level",
    "resolve_skill_level",
]
