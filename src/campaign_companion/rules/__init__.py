"""Pure rules functions: skill levels and prerequisite evaluation."""

from __future__ import annotations

from campaign_companion.rules.prerequisites import (
    can_learn_new_school,
    check_ability_requirement,
    count_known_school_skills,
    evaluate_legacy,
    evaluate_node,
    evaluate_prerequisite,
    filter_available_abilities,
    filter_learnable_spells,
    learnable_schools,
    resolve_school_name,
)
from campaign_companion.rules.skills import (
    BASE_SKILLS,
    MAGIC_SCHOOL_SKILLS,
    SKILL_ATTRIBUTES,
    SkillInfo,
    canonical_skill_name,
    character_skill_info,
    get_base_chance,
    get_skill_attribute,
    is_school_skill,
    lookup_skill_level,
    resolve_skill_level,
)


__all__ = [
    # Skills
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
    # Prerequisites
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
