"""Enumeration types for character advancement.

Attributes, the advancement wizard steps, and the per-roll status used to
track which queued skills have been processed.
"""

from __future__ import annotations

from enum import StrEnum


class Attribute(StrEnum):
    """The six character attributes.

    Values are the upper-case codes used in catalogs and prerequisites.
    """

    STR = "STR"
    AGL = "AGL"
    INT = "INT"
    CHA = "CHA"
    CON = "CON"
    WIL = "WIL"

    @classmethod
    def parse(cls, name: str) -> Attribute | None:
        """Look up an attribute by code, ignoring case and surrounding whitespace.

        Args:
            name: Attribute code such as 'int' or 'WIL'.

        Returns:
            The matching Attribute, or None if the name is not an attribute.
        """
        try:
            return cls(name.strip().upper())
        except ValueError:
            return None


class AdvancementStep(StrEnum):
    """States of the advancement wizard."""

    INITIAL = "initial"
    ENTER_MARKS = "enter_marks"
    SELECT_SKILLS = "select_skills"
    ROLL_SKILLS = "roll_skills"
    SELECT_ABILITY = "select_ability"
    SELECT_STUDY_TYPE = "select_study_type"
    STUDY_TEACHER_SELECT_SKILL = "study_teacher_select_skill"
    STUDY_TEACHER_ROLL_SKILL = "study_teacher_roll_skill"
    STUDY_MAGIC_SELECT_SPELL = "study_magic_select_spell"
    STUDY_MAGIC_SELECT_SCHOOL = "study_magic_select_school"
    STUDY_MAGIC_ROLL_SCHOOL = "study_magic_roll_school"
    FINISHED = "finished"


class RollStatus(StrEnum):
    """Processing status of one roll target."""

    NOT_STARTED = "not_started"
    """Nothing has happened for this target yet."""

    PROCESSING = "processing"
    """A roll was requested and its result is outstanding."""

    SUCCEEDED = "succeeded"
    """The roll (or manual advance) raised the skill."""

    FAILED = "failed"
    """The roll did not beat the target."""

    SKIPPED = "skipped"
    """The skill was already at the maximum level and was not rolled."""

    @property
    def is_processed(self) -> bool:
        """Whether the target is done and navigation may continue."""
        return self in (RollStatus.SUCCEEDED, RollStatus.FAILED, RollStatus.SKIPPED)


class RollContext(StrEnum):
    """Which flow a roll belongs to."""

    END_SESSION = "end_session"
    TEACHER_STUDY = "teacher_study"
    SCHOOL_STUDY = "school_study"


class StudyType(StrEnum):
    """Study options offered from the study menu."""

    TEACHER = "teacher"
    MAGIC = "magic"
    NEW_SCHOOL = "new_school"


class MutationType(StrEnum):
    """Kinds of character changes emitted by the advancement core."""

    SKILL_INCREASE = "skill_increase"
    ABILITY_GRANT = "ability_grant"
    SPELL_GRANT = "spell_grant"
    SCHOOL_GRANT = "school_grant"
    STUDY_SKILL = "study_skill"


__all__ = [
    "Attribute",
    "AdvancementStep",
    "RollStatus",
    "RollContext",
    "StudyType",
    "MutationType",
]
