"""Campaign Companion - skill advancement core.

Skill-level resolution, spell and heroic ability prerequisite evaluation,
and the advancement wizard that rolls skills up at the end of a session or
through study.

Example:
    >>> from campaign_companion import AdvancementSession, Database, MarkedSkills
    >>>
    >>> db = Database("companion.db")
    >>> session = AdvancementSession("char-1", gateway=db, catalog=db, marks=MarkedSkills(["Bluffing"]))
    >>> session.start_end_session()
    >>> session.submit_marks(1)
    >>> session.confirm_skills()
    >>> result = session.roll()
    >>> print(result.message)

Modules:
    core: Configuration, logging, and base exceptions.
    models: Pydantic V2 schemas for characters, catalogs, prerequisites and mutations.
    rules: Skill levels and prerequisite evaluation.
    engine: Dice, collaborator interfaces and the advancement session.
    storage: SQLite character and catalog store.
"""

from __future__ import annotations

# Core
from campaign_companion.core.config import Settings, get_settings
from campaign_companion.core.exceptions import CompanionError
from campaign_companion.core.logging import configure_logging, get_logger

# Engine
from campaign_companion.engine.advancement import AdvancementResult, AdvancementSession
from campaign_companion.engine.dice import DiceRoller
from campaign_companion.engine.ports import MarkedSkills

# Models
from campaign_companion.models.catalog import HeroicAbility, MagicSchool, Spell
from campaign_companion.models.character import CharacterSnapshot
from campaign_companion.models.enums import AdvancementStep, Attribute, RollStatus, StudyType
from campaign_companion.models.mutations import CharacterMutation
from campaign_companion.models.prerequisite import parse_prerequisite

# Rules
from campaign_companion.rules.prerequisites import check_ability_requirement, evaluate_prerequisite
from campaign_companion.rules.skills import resolve_skill_level

# Storage
from campaign_companion.storage.database import Database, get_database


__version__ = "0.1.0"
__all__ = [
    # Version info
    "__version__",
    # Core
    "CompanionError",
    "Settings",
    "get_settings",
    "configure_logging",
    "get_logger",
    # Models
    "Attribute",
    "AdvancementStep",
    "RollStatus",
    "StudyType",
    "CharacterSnapshot",
    "CharacterMutation",
    "HeroicAbility",
    "MagicSchool",
    "Spell",
    "parse_prerequisite",
    # Rules
    "resolve_skill_level",
    "evaluate_prerequisite",
    "check_ability_requirement",
    # Engine
    "AdvancementSession",
    "AdvancementResult",
    "DiceRoller",
    "MarkedSkills",
    # Storage
    "Database",
    "get_database",
]
