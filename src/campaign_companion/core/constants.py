"""Rules constants for skill advancement.

Values here are fixed by the game rules and are not configurable.
"""

from __future__ import annotations

# =============================================================================
# Skill Levels
# =============================================================================

MAX_SKILL_LEVEL = 18
"""Highest level a skill can reach; reaching it unlocks a heroic ability."""

MIN_SKILL_LEVEL = 0
"""Lowest skill level."""

TRAINED_SKILL_MULTIPLIER = 2
"""Trained skills start at double the base chance."""

# =============================================================================
# Base Chance Table
# =============================================================================

BASE_CHANCE_STEPS: tuple[tuple[int, int], ...] = (
    (5, 3),
    (8, 4),
    (12, 5),
    (15, 6),
)
"""(highest attribute value, base chance) pairs, checked in order."""

BASE_CHANCE_MAX = 7
"""Base chance for attributes above the last step."""

# =============================================================================
# Prerequisites
# =============================================================================

ANY_SCHOOL_SENTINEL = "ANY SCHOOL OF MAGIC"
"""Legacy prerequisite phrase satisfied by membership in any school."""

LEGACY_OR_SEPARATOR = r" OR "
LEGACY_AND_SEPARATOR = r" AND "

# =============================================================================
# Abilities
# =============================================================================

DEFAULT_MAGIC_TALENT_ABILITY = "Magic Talent"
"""Heroic ability whose copies bound the number of schools a character may learn."""


__all__ = [
    "MAX_SKILL_LEVEL",
    "MIN_SKILL_LEVEL",
    "TRAINED_SKILL_MULTIPLIER",
    "BASE_CHANCE_STEPS",
    "BASE_CHANCE_MAX",
    "ANY_SCHOOL_SENTINEL",
    "LEGACY_OR_SEPARATOR",
    "LEGACY_AND_SEPARATOR",
    "DEFAULT_MAGIC_TALENT_ABILITY",
]
