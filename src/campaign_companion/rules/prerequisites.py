"""Prerequisite evaluation for spells and heroic abilities.

Spell prerequisites are either a structured tree or a legacy string with
two fixed precedence levels (``OR`` binds looser than ``AND``, no
parentheses). Heroic abilities use a simpler requirement grammar: a single
``"NAME N"`` string or a mapping of name to minimum value.

Every comparison is ``>=``. Nothing here raises on malformed input; an
unreadable condition is simply not satisfied.

Example:
    >>> evaluate_prerequisite("WIL 12 OR Light", character)
    True
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from campaign_companion.core.constants import (
    ANY_SCHOOL_SENTINEL,
    LEGACY_AND_SEPARATOR,
    LEGACY_OR_SEPARATOR,
)
from campaign_companion.core.logging import get_logger
from campaign_companion.models.catalog import AbilityRequirement, HeroicAbility, MagicSchool, Spell
from campaign_companion.models.character import CharacterSnapshot
from campaign_companion.models.prerequisite import (
    AnySchoolPrerequisite,
    AttributeLevelPrerequisite,
    EmptyPrerequisite,
    LegacyPrerequisite,
    LogicalPrerequisite,
    ParsedPrerequisite,
    PrerequisiteNode,
    SchoolMembershipPrerequisite,
    SkillLevelPrerequisite,
    SpellKnownPrerequisite,
    TreePrerequisite,
    parse_prerequisite,
)
from campaign_companion.rules.skills import MAGIC_SCHOOL_SKILLS, canonical_skill_name, lookup_skill_level


logger = get_logger(__name__)

_OR_SPLIT = re.compile(LEGACY_OR_SEPARATOR, re.IGNORECASE)
_AND_SPLIT = re.compile(LEGACY_AND_SEPARATOR, re.IGNORECASE)


# =============================================================================
# Shared Lookups
# =============================================================================


def _parse_threshold(text: str) -> tuple[str, int] | None:
    """Split ``"NAME N"`` into its name and integer value."""
    parts = text.strip().split(" ")
    if len(parts) != 2:
        return None
    name, value = parts
    try:
        return name, int(value)
    except ValueError:
        return None


def _meets_threshold(character: CharacterSnapshot, name: str, minimum: int) -> bool:
    """Check an attribute, or failing that a skill, against a minimum.

    An unknown name never satisfies the threshold.
    """
    attribute_value = character.attribute_value(name)
    if attribute_value is not None:
        return attribute_value >= minimum
    level = lookup_skill_level(character, name)
    return level is not None and level >= minimum


# =============================================================================
# Tree Grammar
# =============================================================================


def evaluate_node(
    node: PrerequisiteNode,
    character: CharacterSnapshot,
    character_school_name: str | None = None,
) -> bool:
    """Evaluate a prerequisite tree node.

    ``negate`` is applied to the node's own result after evaluation. An
    unrecognized node is False before negation; an unknown logical operator
    is False regardless of ``negate``.
    """
    if isinstance(node, LogicalPrerequisite):
        if node.operator == "AND":
            result = all(evaluate_node(c, character, character_school_name) for c in node.conditions)
        elif node.operator == "OR":
            result = any(evaluate_node(c, character, character_school_name) for c in node.conditions)
        else:
            logger.warning("Unknown logical operator in prerequisite", operator=node.operator)
            return False
    elif isinstance(node, SpellKnownPrerequisite):
        result = character.knows_spell(node.name)
    elif isinstance(node, SchoolMembershipPrerequisite):
        result = character_school_name is not None and character_school_name.upper() == node.name.upper()
    elif isinstance(node, AnySchoolPrerequisite):
        result = character.has_magic_school
    elif isinstance(node, SkillLevelPrerequisite):
        level = lookup_skill_level(character, node.name)
        result = level is not None and level >= node.value
    elif isinstance(node, AttributeLevelPrerequisite):
        value = character.attribute_value(node.name)
        result = value is not None and value >= node.value
    else:
        logger.debug("Unknown prerequisite node is unsatisfied", kind=getattr(node, "kind", None))
        result = False

    return not result if node.negate else result


# =============================================================================
# Legacy Grammar
# =============================================================================


def _evaluate_legacy_condition(
    condition: str,
    character: CharacterSnapshot,
    character_school_name: str | None,
    school_names: set[str],
) -> bool:
    wanted = condition.strip().upper()

    if wanted == ANY_SCHOOL_SENTINEL:
        return character.has_magic_school
    if wanted in character.known_spell_names():
        return True
    if wanted in school_names:
        return character_school_name is not None and character_school_name.upper() == wanted

    threshold = _parse_threshold(wanted)
    if threshold is not None:
        return _meets_threshold(character, *threshold)
    return False


def evaluate_legacy(
    expression: str,
    character: CharacterSnapshot,
    character_school_name: str | None = None,
    all_schools: Iterable[MagicSchool] = (),
) -> bool:
    """Evaluate a legacy ``A OR B AND C`` prerequisite string.

    The text is split on `` OR `` into alternatives and each alternative on
    `` AND `` into conditions, both case-insensitively. Condition names that
    contain those words are split too.
    """
    school_names = {school.name.upper() for school in all_schools}
    return any(
        all(
            _evaluate_legacy_condition(condition, character, character_school_name, school_names)
            for condition in _AND_SPLIT.split(group.strip())
        )
        for group in _OR_SPLIT.split(expression.strip())
    )


# =============================================================================
# Entry Points
# =============================================================================


def evaluate_prerequisite(
    source: str | ParsedPrerequisite | None,
    character: CharacterSnapshot,
    character_school_name: str | None = None,
    all_schools: Iterable[MagicSchool] = (),
) -> bool:
    """Decide whether a character meets a spell prerequisite.

    Args:
        source: Raw prerequisite text, an already parsed prerequisite, or None.
        character: The character to check.
        character_school_name: Name of the character's school, if any.
        all_schools: School catalog, used by the legacy grammar to recognize
            school names.

    Returns:
        True if the prerequisite is satisfied.
    """
    if isinstance(source, (TreePrerequisite, LegacyPrerequisite, EmptyPrerequisite)):
        parsed = source
    else:
        parsed = parse_prerequisite(source)

    if isinstance(parsed, TreePrerequisite):
        return evaluate_node(parsed.tree, character, character_school_name)
    if isinstance(parsed, LegacyPrerequisite):
        return evaluate_legacy(parsed.expression, character, character_school_name, all_schools)
    return True


def check_ability_requirement(requirement: AbilityRequirement, character: CharacterSnapshot) -> bool:
    """Decide whether a character meets a heroic ability requirement.

    A string must be exactly ``"NAME N"``. In a mapping every entry must be
    met; entries with a None value are ignored.
    """
    if not requirement:
        return True

    if isinstance(requirement, str):
        threshold = _parse_threshold(requirement)
        return threshold is not None and _meets_threshold(character, *threshold)

    for name, minimum in requirement.items():
        if minimum is None:
            continue
        if not _meets_threshold(character, name, minimum):
            return False
    return True


# =============================================================================
# Eligibility Filters
# =============================================================================


def _matches_restriction(restriction: str | None, value: str | None) -> bool:
    if not restriction:
        return True
    return value is not None and restriction.strip().lower() == value.strip().lower()


def filter_available_abilities(
    abilities: Iterable[HeroicAbility],
    character: CharacterSnapshot,
    *,
    repeatable: Iterable[str] = (),
) -> list[HeroicAbility]:
    """Heroic abilities the character may take.

    Known abilities are dropped unless listed in ``repeatable``. Kin and
    profession restrictions must match, and the requirement must be met.
    """
    repeatable_upper = {name.upper() for name in repeatable}
    available: list[HeroicAbility] = []
    for ability in abilities:
        if character.has_ability(ability.name) and ability.name.upper() not in repeatable_upper:
            continue
        if not _matches_restriction(ability.kin, character.kin):
            continue
        if not _matches_restriction(ability.profession, character.profession):
            continue
        if not check_ability_requirement(ability.requirement, character):
            continue
        available.append(ability)
    return available


def resolve_school_name(character: CharacterSnapshot, schools: Iterable[MagicSchool]) -> str | None:
    """Name of the character's school, looked up by id in the catalog."""
    if character.magic_school_id is None:
        return None
    for school in schools:
        if school.id == character.magic_school_id:
            return school.name
    return None


def filter_learnable_spells(
    spells: Iterable[Spell],
    character: CharacterSnapshot,
    school_name: str | None,
    schools: Sequence[MagicSchool],
) -> list[Spell]:
    """Spells the character does not know yet and qualifies for."""
    known = character.known_spell_names()
    return [
        spell
        for spell in spells
        if spell.name.upper() not in known
        and evaluate_prerequisite(spell.parsed_prerequisite, character, school_name, schools)
    ]


def count_known_school_skills(character: CharacterSnapshot) -> int:
    """Number of school skills with a recorded level or training."""
    return sum(
        1
        for skill in MAGIC_SCHOOL_SKILLS
        if character.skill_level_entry(skill) is not None or character.is_trained(skill)
    )


def can_learn_new_school(character: CharacterSnapshot, talent_ability: str) -> bool:
    """Whether an unused copy of the talent ability allows another school."""
    return character.ability_count(talent_ability) > count_known_school_skills(character)


def learnable_schools(character: CharacterSnapshot, schools: Iterable[MagicSchool]) -> list[MagicSchool]:
    """Catalog schools whose skill the character does not know yet."""
    result: list[MagicSchool] = []
    for school in schools:
        skill = canonical_skill_name(school.name)
        if skill not in MAGIC_SCHOOL_SKILLS:
            continue
        if school.id == character.magic_school_id:
            continue
        if character.skill_level_entry(skill) is not None or character.is_trained(skill):
            continue
        result.append(school)
    return result


__all__ = [
    "can_learn_new_school",
    "check_ability_requirement",
    "count_known_school_skills",
    "evaluate_legacy",
    "evaluate_node",
    "evaluate_prerequisite",
    "filter_available_abilities",
    "filter_learnable_spells",
    "learnable_schools",
    "resolve_school_name",
]
