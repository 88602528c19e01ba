"""Pydantic data models for the advancement core.

Exports:
    Enums: Attribute, AdvancementStep, RollStatus, RollContext, StudyType, MutationType
    Character: CharacterSnapshot, CharacterSpells, SchoolSpells, Teacher
    Catalog: HeroicAbility, Spell, MagicSchool
    Prerequisites: prerequisite node types and parse_prerequisite
    Mutations: CharacterMutation, apply_mutation
"""

from __future__ import annotations

from campaign_companion.models.catalog import AbilityRequirement, HeroicAbility, MagicSchool, Spell
from campaign_companion.models.character import (
    AttributeScore,
    CharacterSnapshot,
    CharacterSpells,
    SchoolSpells,
    Teacher,
)
from campaign_companion.models.enums import (
    AdvancementStep,
    Attribute,
    MutationType,
    RollContext,
    RollStatus,
    StudyType,
)
from campaign_companion.models.mutations import CharacterMutation, apply_mutation
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
    UnknownPrerequisite,
    parse_node,
    parse_prerequisite,
)


__all__ = [
    # Enums
    "Attribute",
    "AdvancementStep",
    "RollStatus",
    "RollContext",
    "StudyType",
    "MutationType",
    # Character
    "AttributeScore",
    "CharacterSnapshot",
    "CharacterSpells",
    "SchoolSpells",
    "Teacher",
    # Catalog
    "AbilityRequirement",
    "HeroicAbility",
    "MagicSchool",
    "Spell",
    # Prerequisites
    "PrerequisiteNode",
    "SpellKnownPrerequisite",
    "SchoolMembershipPrerequisite",
    "AnySchoolPrerequisite",
    "SkillLevelPrerequisite",
    "AttributeLevelPrerequisite",
    "LogicalPrerequisite",
    "TreePrerequisite",
    "UnknownPrerequisite",
    "LegacyPrerequisite",
    "EmptyPrerequisite",
    "ParsedPrerequisite",
    "parse_node",
    "parse_prerequisite",
    # Mutations
    "CharacterMutation",
    "apply_mutation",
]
