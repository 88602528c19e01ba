"""Advancement engine: dice, collaborator interfaces and the advancement session.

Exports:
    DiceRoller, DiceExpression, roll: Dice rolling on the d20 library.
    CharacterGateway, CatalogProvider, SessionMarks, AdvancementRoller: Collaborator protocols.
    MarkedSkills: In-memory SessionMarks.
    AdvancementSession: The advancement wizard state machine.
    AdvancementResult, PendingRoll, QueuedSkill: Session records.
"""

from __future__ import annotations

from campaign_companion.engine.advancement import (
    AdvancementResult,
    AdvancementSession,
    PendingRoll,
    QueuedSkill,
)
from campaign_companion.engine.dice import DiceExpression, DiceRoller, roll
from campaign_companion.engine.ports import (
    AdvancementRoller,
    CatalogProvider,
    CharacterGateway,
    MarkedSkills,
    SessionMarks,
)


__all__ = [
    # Dice
    "DiceExpression",
    "DiceRoller",
    "roll",
    # Ports
    "AdvancementRoller",
    "CatalogProvider",
    "CharacterGateway",
    "MarkedSkills",
    "SessionMarks",
    # Session
    "AdvancementResult",
    "AdvancementSession",
    "PendingRoll",
    "QueuedSkill",
]
