"""Advancement session: the skill advancement wizard as a state machine.

A session walks one character through either the end-of-session flow
(enter marks, pick skills, roll each one, maybe pick a heroic ability) or a
study flow (teacher study, learning a spell, learning a new school).

The session owns only ephemeral state. The character is read through a
CharacterGateway and every change is sent back to it as a
CharacterMutation, after which the snapshot is read again.

Rolls are split in two: ``request_roll`` returns the pending roll and
suspends the session until ``complete_roll`` supplies the drawn value.
``roll`` does both with a local dice roller.

Every public operation returns an AdvancementResult. Rejected operations
leave the session exactly as it was.

Example:
    >>> session = AdvancementSession("char-1", gateway=db, catalog=db, marks=MarkedSkills())
    >>> session.start_end_session().step
    <AdvancementStep.ENTER_MARKS: 'enter_marks'>
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from campaign_companion.core.config import AdvancementSettings, get_settings
from campaign_companion.core.constants import MAX_SKILL_LEVEL
from campaign_companion.core.exceptions import (
    CatalogError,
    CompanionError,
    InvalidAdvancementStateError,
    MissingDataError,
    PersistenceError,
    RollInProgressError,
    ValidationError,
)
from campaign_companion.core.logging import bind_context, clear_context, get_logger
from campaign_companion.engine.dice import DiceRoller
from campaign_companion.engine.ports import AdvancementRoller, CatalogProvider, CharacterGateway, SessionMarks
from campaign_companion.models.catalog import HeroicAbility, MagicSchool, Spell
from campaign_companion.models.character import CharacterSnapshot
from campaign_companion.models.enums import AdvancementStep, Attribute, RollContext, RollStatus, StudyType
from campaign_companion.models.mutations import CharacterMutation, apply_mutation
from campaign_companion.rules.prerequisites import (
    can_learn_new_school,
    filter_available_abilities,
    filter_learnable_spells,
    learnable_schools,
    resolve_school_name,
)
from campaign_companion.rules.skills import (
    SkillInfo,
    canonical_skill_name,
    character_skill_info,
    get_base_chance,
    resolve_skill_level,
)


logger = get_logger(__name__)


_ROLL_CONTEXTS: dict[AdvancementStep, RollContext] = {
    AdvancementStep.ROLL_SKILLS: RollContext.END_SESSION,
    AdvancementStep.STUDY_TEACHER_ROLL_SKILL: RollContext.TEACHER_STUDY,
    AdvancementStep.STUDY_MAGIC_ROLL_SCHOOL: RollContext.SCHOOL_STUDY,
}

_BACK_STEPS: dict[AdvancementStep, AdvancementStep] = {
    AdvancementStep.ENTER_MARKS: AdvancementStep.INITIAL,
    AdvancementStep.SELECT_SKILLS: AdvancementStep.ENTER_MARKS,
    AdvancementStep.SELECT_STUDY_TYPE: AdvancementStep.INITIAL,
    AdvancementStep.STUDY_TEACHER_SELECT_SKILL: AdvancementStep.SELECT_STUDY_TYPE,
    AdvancementStep.STUDY_MAGIC_SELECT_SPELL: AdvancementStep.SELECT_STUDY_TYPE,
    AdvancementStep.STUDY_MAGIC_SELECT_SCHOOL: AdvancementStep.SELECT_STUDY_TYPE,
}


# =============================================================================
# Session Records
# =============================================================================


@dataclass
class QueuedSkill:
    """A roll target and how far it has been processed.

    Attributes:
        skill: Skill being advanced (the school skill for school study).
        status: Processing status for this visit.
        message: Outcome text once processed.
        roll_value: The drawn value, if a roll was made.
        level_before: Level before processing.
        level_after: Level after processing.
    """

    skill: str
    status: RollStatus = RollStatus.NOT_STARTED
    message: str | None = None
    roll_value: int | None = None
    level_before: int | None = None
    level_after: int | None = None


@dataclass(frozen=True)
class PendingRoll:
    """An outstanding roll request.

    Attributes:
        context: Which flow the roll belongs to.
        skill: Skill (or school skill) being rolled for.
        target: Value the roll must exceed.
        label: Description to show alongside the dice.
    """

    context: RollContext
    skill: str
    target: int
    label: str


@dataclass
class AdvancementResult:
    """Result of a session operation.

    Attributes:
        success: Whether the operation was accepted.
        step: The session step after the operation.
        message: Human-readable outcome.
        error: Error message if the operation was rejected, or a non-fatal
            persistence warning on an accepted roll.
        pending_roll: The roll awaiting completion, if any.
        closed: Whether the session has closed.
    """

    success: bool
    step: AdvancementStep
    message: str = ""
    error: str = ""
    pending_roll: PendingRoll | None = None
    closed: bool = False


# =============================================================================
# Advancement Session
# =============================================================================


class AdvancementSession:
    """State machine for one character's advancement wizard.

    Attributes:
        character_id: The character being advanced.
        step: Current wizard step.
        closed: Whether the wizard has closed.
    """

    def __init__(
        self,
        character_id: str,
        *,
        gateway: CharacterGateway,
        catalog: CatalogProvider,
        marks: SessionMarks,
        roller: AdvancementRoller | None = None,
        settings: AdvancementSettings | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            character_id: Id of the character to advance.
            gateway: Character store.
            catalog: Ability, spell and school catalogs.
            marks: Skills marked during play.
            roller: Dice used by ``roll``. Defaults to a DiceRoller.
            settings: Advancement settings. Defaults to the configured ones.
        """
        self.character_id = character_id
        self._gateway = gateway
        self._catalog = catalog
        self._marks = marks
        self._roller = roller
        self._settings = settings or get_settings().advancement

        self._step = AdvancementStep.INITIAL
        self._closed = False
        self._snapshot: CharacterSnapshot | None = None
        self._last_message = ""

        # Catalogs are fetched at most once per session
        self._spells: list[Spell] | None = None
        self._schools: list[MagicSchool] | None = None

        self._reset_scratch()
        logger.info("AdvancementSession created", character_id=character_id)

    def _reset_scratch(self) -> None:
        self._marks_available = 0
        self._selected_skills: dict[str, None] = {}
        self._queue: list[QueuedSkill] = []
        self._cursor = 0
        self._pending_ability_grant: str | None = None
        self._pending_roll: PendingRoll | None = None
        self._available_abilities: list[HeroicAbility] = []
        self._selected_ability: HeroicAbility | None = None
        self._study_skill_selected: str | None = None
        self._study_entry: QueuedSkill | None = None
        self._school_name: str | None = None
        self._learnable_spells: list[Spell] = []
        self._selected_spell: Spell | None = None
        self._learnable_schools: list[MagicSchool] = []
        self._selected_school: MagicSchool | None = None
        self._school_entry: QueuedSkill | None = None

    # =========================================================================
    # Read-only State
    # =========================================================================

    @property
    def step(self) -> AdvancementStep:
        return self._step

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def snapshot(self) -> CharacterSnapshot | None:
        """The most recently read character snapshot."""
        return self._snapshot

    @property
    def marks_available(self) -> int:
        return self._marks_available

    @property
    def selected_skills(self) -> tuple[str, ...]:
        return tuple(self._selected_skills)

    @property
    def roll_queue(self) -> tuple[QueuedSkill, ...]:
        return tuple(self._queue)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def current_entry(self) -> QueuedSkill | None:
        """The roll target of the current step, if the step rolls."""
        if self._step == AdvancementStep.ROLL_SKILLS and self._queue:
            return self._queue[self._cursor]
        if self._step == AdvancementStep.STUDY_TEACHER_ROLL_SKILL:
            return self._study_entry
        if self._step == AdvancementStep.STUDY_MAGIC_ROLL_SCHOOL:
            return self._school_entry
        return None

    @property
    def pending_roll(self) -> PendingRoll | None:
        return self._pending_roll

    @property
    def pending_ability_grant(self) -> str | None:
        """Skill whose first time at 18 earned a heroic ability."""
        return self._pending_ability_grant

    @property
    def available_abilities(self) -> tuple[HeroicAbility, ...]:
        return tuple(self._available_abilities)

    @property
    def selected_ability(self) -> HeroicAbility | None:
        return self._selected_ability

    @property
    def study_skill_selected(self) -> str | None:
        return self._study_skill_selected

    @property
    def school_name(self) -> str | None:
        """Name of the character's own school, once magic data is loaded."""
        return self._school_name

    @property
    def learnable_spells(self) -> tuple[Spell, ...]:
        return tuple(self._learnable_spells)

    @property
    def selected_spell(self) -> Spell | None:
        return self._selected_spell

    @property
    def learnable_schools(self) -> tuple[MagicSchool, ...]:
        return tuple(self._learnable_schools)

    @property
    def selected_school(self) -> MagicSchool | None:
        return self._selected_school

    @property
    def last_message(self) -> str:
        return self._last_message

    def available_skills(self) -> list[SkillInfo]:
        """The character's skill list, or an empty list before loading."""
        if self._snapshot is None:
            return []
        return character_skill_info(self._snapshot)

    # =========================================================================
    # Internals
    # =========================================================================

    def _execute(self, action: str, handler: Callable[[], AdvancementResult]) -> AdvancementResult:
        """Run an operation, converting errors into a failed result."""
        bind_context(character_id=self.character_id, action=action)
        try:
            result = handler()
            if result.message:
                self._last_message = result.message
            return result
        except CompanionError as exc:
            logger.warning("Advancement action rejected", step=self._step, error=exc.message)
            return self._failure(exc.message)
        except Exception as exc:
            logger.exception("Unexpected error during advancement action")
            return self._failure(f"Unexpected error: {exc}")
        finally:
            clear_context()

    def _ok(self, message: str = "", *, error: str = "") -> AdvancementResult:
        return AdvancementResult(
            success=True,
            step=self._step,
            message=message,
            error=error,
            pending_roll=self._pending_roll,
            closed=self._closed,
        )

    def _failure(self, error: str) -> AdvancementResult:
        return AdvancementResult(
            success=False,
            step=self._step,
            error=error,
            pending_roll=self._pending_roll,
            closed=self._closed,
        )

    def _transition(self, to_step: AdvancementStep) -> None:
        logger.info("Advancement step changed", from_step=self._step, to_step=to_step)
        self._step = to_step

    def _close(self) -> None:
        self._pending_roll = None
        self._closed = True
        logger.info("AdvancementSession closed", step=self._step)

    def _require_open(self) -> None:
        if self._closed:
            raise InvalidAdvancementStateError("The advancement session is closed", current_step=self._step)

    def _require_step(self, *steps: AdvancementStep) -> None:
        self._require_open()
        if self._step not in steps:
            raise InvalidAdvancementStateError(
                f"Not allowed in step '{self._step}'",
                current_step=self._step,
                expected_steps=[s.value for s in steps],
            )

    def _require_no_pending_roll(self) -> None:
        if self._pending_roll is not None:
            raise RollInProgressError(
                f"A roll for {self._pending_roll.skill} is still pending",
                details={"skill": self._pending_roll.skill},
            )

    def _character(self) -> CharacterSnapshot:
        if self._snapshot is None:
            self._refresh_snapshot()
        assert self._snapshot is not None
        return self._snapshot

    def _refresh_snapshot(self) -> CharacterSnapshot:
        try:
            snapshot = self._gateway.get_snapshot(self.character_id)
        except CompanionError:
            raise
        except Exception as exc:
            raise MissingDataError(
                "Character data not available",
                details={"character_id": self.character_id, "original_error": str(exc)},
            ) from exc
        if snapshot is None:
            raise MissingDataError("Character data not available", details={"character_id": self.character_id})
        self._snapshot = snapshot
        return snapshot

    def _persist(self, mutation: CharacterMutation) -> None:
        """Send a mutation to the store and read the character back."""
        logger.info("Applying mutation", mutation_type=mutation.mutation_type, change=mutation.describe())
        try:
            self._gateway.apply_mutation(mutation)
        except PersistenceError:
            raise
        except Exception as exc:
            raise PersistenceError(
                f"Failed to save {mutation.describe()}: {exc}",
                character_id=self.character_id,
            ) from exc
        self._refresh_snapshot()

    def _persist_non_fatal(self, mutation: CharacterMutation) -> str:
        """Persist during a roll. Failures become a warning string.

        The session keeps the outcome locally so it stays consistent with
        what was reported.
        """
        try:
            self._persist(mutation)
        except CompanionError as exc:
            logger.error("Failed to persist advancement", change=mutation.describe(), error=exc.message)
            if self._snapshot is not None:
                self._snapshot = apply_mutation(self._snapshot, mutation)
            return f"Failed to save change ({mutation.describe()}): {exc.message}"
        return ""

    def _fetch_catalog(self, name: str, fetch: Callable[[], list[Any]]) -> list[Any]:
        try:
            return fetch()
        except CatalogError:
            raise
        except Exception as exc:
            raise CatalogError(f"Failed to load {name}: {exc}", catalog=name) from exc

    def _find_skill(self, skill_name: str) -> SkillInfo:
        skills = self.available_skills()
        for info in skills:
            if info.name == skill_name:
                return info
        wanted = skill_name.strip().upper()
        for info in skills:
            if info.name.upper() == wanted:
                return info
        raise ValidationError(f"Unknown skill: {skill_name}", field_name="skill", invalid_value=skill_name)

    def _roll_target(self, context: RollContext, entry: QueuedSkill) -> int:
        character = self._character()
        if context == RollContext.SCHOOL_STUDY:
            return character.attributes[Attribute(self._settings.school_learning_attribute)]
        return resolve_skill_level(character, entry.skill)

    def _skip_if_maxed(self, entry: QueuedSkill) -> bool:
        """Mark a skill already at the maximum as skipped."""
        level = resolve_skill_level(self._character(), entry.skill)
        if level < MAX_SKILL_LEVEL:
            return False
        entry.status = RollStatus.SKIPPED
        entry.level_before = entry.level_after = level
        entry.message = f"Skill {entry.skill} is already at max level ({MAX_SKILL_LEVEL}). Cannot advance further."
        logger.info("Skipping skill at max level", skill=entry.skill)
        return True

    def _current_roll(self) -> tuple[RollContext, QueuedSkill]:
        self._require_open()
        context = _ROLL_CONTEXTS.get(self._step)
        entry = self.current_entry
        if context is None or entry is None:
            raise InvalidAdvancementStateError(
                f"No roll can be made in step '{self._step}'",
                current_step=self._step,
                expected_steps=[s.value for s in _ROLL_CONTEXTS],
            )
        return context, entry

    def _prepare_roll(self) -> tuple[RollContext, QueuedSkill] | None:
        """Validate a roll or manual advance; None when the target was skipped."""
        context, entry = self._current_roll()
        self._require_no_pending_roll()
        if entry.status.is_processed:
            raise InvalidAdvancementStateError(
                f"{entry.skill} has already been processed",
                current_step=self._step,
                details={"status": entry.status.value},
            )
        if context != RollContext.SCHOOL_STUDY and self._skip_if_maxed(entry):
            return None
        return context, entry

    def _resolve(self, context: RollContext, entry: QueuedSkill, target: int, value: int | None) -> AdvancementResult:
        """Apply the outcome of a roll, or of a manual advance when value is None."""
        entry.roll_value = value
        entry.level_before = target
        succeeded = value is None or value > target

        if context == RollContext.SCHOOL_STUDY:
            return self._resolve_school(entry, target, value, succeeded)

        if value is None:
            text = f"Manually advanced {entry.skill}."
        elif context == RollContext.TEACHER_STUDY:
            text = f"Studied {entry.skill}. Rolled {value} vs Target > {target}."
        else:
            text = f"Rolled {value} vs {entry.skill} (Target > {target})."

        if not succeeded:
            entry.status = RollStatus.FAILED
            entry.level_after = target
            entry.message = f"{text} Failed to increase skill."
            logger.info("Advancement roll failed", skill=entry.skill, roll=value, target=target)
            return self._ok(entry.message)

        new_level = min(target + 1, MAX_SKILL_LEVEL)
        warning = self._persist_non_fatal(CharacterMutation.skill_increase(self.character_id, entry.skill, new_level))
        entry.status = RollStatus.SUCCEEDED
        entry.level_after = new_level
        text = f"{text} Success! Skill increased. New Level: {new_level}."
        if new_level == MAX_SKILL_LEVEL and target < MAX_SKILL_LEVEL:
            text += f" Reached level {MAX_SKILL_LEVEL}!"
            if context == RollContext.END_SESSION:
                self._pending_ability_grant = entry.skill
        entry.message = text
        logger.info(
            "Skill advanced",
            skill=entry.skill,
            roll=value,
            target=target,
            level=new_level,
            context=context,
        )
        return self._ok(text, error=warning)

    def _resolve_school(
        self,
        entry: QueuedSkill,
        target: int,
        value: int | None,
        succeeded: bool,
    ) -> AdvancementResult:
        school = self._selected_school
        assert school is not None
        attribute = self._settings.school_learning_attribute
        text = (
            f"Studied {school.name} manually."
            if value is None
            else f"Studied {school.name}. Rolled {value} vs {attribute} (Target > {target})."
        )
        if not succeeded:
            entry.status = RollStatus.FAILED
            entry.message = f"{text} Failed to learn the school."
            logger.info("School study failed", school=school.name, roll=value, target=target)
            return self._ok(entry.message)

        level = get_base_chance(target)
        warning = self._persist_non_fatal(CharacterMutation.school_grant(self.character_id, entry.skill, level))
        entry.status = RollStatus.SUCCEEDED
        entry.level_after = level
        entry.message = f"{text} Success! Learned {entry.skill} at level {level}."
        logger.info("School learned", school=school.name, skill=entry.skill, level=level)
        return self._ok(entry.message, error=warning)

    def _load_abilities(self) -> None:
        abilities = self._fetch_catalog("abilities", self._catalog.fetch_abilities)
        self._available_abilities = filter_available_abilities(
            abilities,
            self._character(),
            repeatable=self._settings.repeatable_abilities,
        )
        self._selected_ability = None
        logger.info("Heroic abilities loaded", available=len(self._available_abilities))

    def _load_schools(self) -> list[MagicSchool]:
        if self._schools is None:
            self._schools = self._fetch_catalog("schools", self._catalog.fetch_schools)
        return self._schools

    def _load_spells(self) -> list[Spell]:
        if self._spells is None:
            self._spells = self._fetch_catalog("spells", self._catalog.fetch_spells)
        return self._spells

    def _advance_cursor_or_finish(self) -> str:
        if self._cursor < len(self._queue) - 1:
            self._cursor += 1
            entry = self._queue[self._cursor]
            self._skip_if_maxed(entry)
            return entry.message or f"Next skill: {entry.skill}."
        self._transition(AdvancementStep.FINISHED)
        return "Advancement complete."

    # =========================================================================
    # Entry Points
    # =========================================================================

    def start_end_session(self) -> AdvancementResult:
        """Begin the end-of-session flow."""

        def handler() -> AdvancementResult:
            self._require_step(AdvancementStep.INITIAL)
            self._refresh_snapshot()
            self._reset_scratch()
            self._transition(AdvancementStep.ENTER_MARKS)
            return self._ok("Enter the number of advancement marks.")

        return self._execute("start_end_session", handler)

    def start_study(self) -> AdvancementResult:
        """Begin the study flow."""

        def handler() -> AdvancementResult:
            self._require_step(AdvancementStep.INITIAL)
            self._refresh_snapshot()
            self._reset_scratch()
            self._transition(AdvancementStep.SELECT_STUDY_TYPE)
            return self._ok("Choose how to study.")

        return self._execute("start_study", handler)

    # =========================================================================
    # End of Session
    # =========================================================================

    def submit_marks(self, marks: int) -> AdvancementResult:
        """Enter the number of advancement marks earned.

        Skills marked during play are pre-selected in marking order, up to
        ``marks``, skipping skills the character cannot advance.
        """

        def handler() -> AdvancementResult:
            self._require_step(AdvancementStep.ENTER_MARKS)
            if isinstance(marks, bool) or not isinstance(marks, int) or marks <= 0:
                raise ValidationError(
                    "Please enter at least one Advancement Mark.",
                    field_name="marks",
                    invalid_value=marks,
                )
            skills = {info.name: info for info in self.available_skills()}
            selection: dict[str, None] = {}
            for name in self._marks.marked_skills():
                if len(selection) >= marks:
                    break
                canonical = canonical_skill_name(name) or name
                info = skills.get(canonical)
                if info is None or info.at_max:
                    continue
                selection[info.name] = None

            self._marks_available = marks
            self._selected_skills = selection
            self._transition(AdvancementStep.SELECT_SKILLS)
            return self._ok(f"Select {marks} skill(s) to advance.")

        return self._execute("submit_marks", handler)

    def toggle_skill(self, skill_name: str) -> AdvancementResult:
        """Select or deselect a skill for advancement."""

        def handler() -> AdvancementResult:
            self._require_step(AdvancementStep.SELECT_SKILLS)
            info = self._find_skill(skill_name)
            if info.name in self._selected_skills:
                del self._selected_skills[info.name]
                return self._ok(f"Deselected {info.name}.")
            if info.at_max:
                raise ValidationError(
                    f"{info.name} is already at max level ({MAX_SKILL_LEVEL})",
                    field_name="skill",
                    invalid_value=info.name,
                )
            if len(self._selected_skills) >= self._marks_available:
                raise ValidationError(
                    f"Only {self._marks_available} skill(s) can be selected",
                    field_name="skill",
                    invalid_value=info.name,
                )
            self._selected_skills[info.name] = None
            return self._ok(f"Selected {info.name}.")

        return self._execute("toggle_skill", handler)

    def confirm_skills(self) -> AdvancementResult:
        """Lock in the selection and start rolling."""

        def handler() -> AdvancementResult:
            self._require_step(AdvancementStep.SELECT_SKILLS)
            if len(self._selected_skills) != self._marks_available:
                raise ValidationError(
                    f"Please select exactly {self._marks_available} skill(s).",
                    field_name="selected_skills",
                    invalid_value=len(self._selected_skills),
                )
            self._queue = [QueuedSkill(skill=name) for name in self._selected_skills]
            self._cursor = 0
            self._pending_ability_grant = None
            self._transition(AdvancementStep.ROLL_SKILLS)
            entry = self._queue[0]
            self._skip_if_maxed(entry)
            return self._ok(entry.message or f"Roll for {entry.skill}.")

        return self._execute("confirm_skills", handler)

    def next_skill(self) -> AdvancementResult:
        """Move past the current skill once it has been processed.

        Goes to ability selection when a skill first reached the maximum,
        otherwise to the next queued skill or to Finished.
        """

        def handler() -> AdvancementResult:
            self._require_step(AdvancementStep.ROLL_SKILLS)
            self._require_no_pending_roll()
            entry = self._queue[self._cursor]
            if not entry.status.is_processed and not self._skip_if_maxed(entry):
                raise ValidationError(
                    f"Roll or advance {entry.skill} first.",
                    field_name="skill",
                    invalid_value=entry.skill,
                )
            if self._pending_ability_grant is not None:
                self._load_abilities()
                self._transition(AdvancementStep.SELECT_ABILITY)
                return self._ok(
                    f"{self._pending_ability_grant} reached level {MAX_SKILL_LEVEL}. Choose a heroic ability."
                )
            return self._ok(self._advance_cursor_or_finish())

        return self._execute("next_skill", handler)

    def select_ability(self, ability_name: str) -> AdvancementResult:
        """Choose one of the available heroic abilities."""

        def handler() -> AdvancementResult:
            self._require_step(AdvancementStep.SELECT_ABILITY)
            wanted = ability_name.strip().upper()
            for ability in self._available_abilities:
                if ability.name.upper() == wanted:
                    self._selected_ability = ability
                    return self._ok(f"Selected {ability.name}.")
            raise ValidationError(
                f"Heroic ability not available: {ability_name}",
                field_name="ability",
                invalid_value=ability_name,
            )

        return self._execute("select_ability", handler)

    def confirm_ability(self) -> AdvancementResult:
        """Grant the selected heroic ability and continue rolling.

        When no ability is available at all the session continues without
        a grant.
        """

        def handler() -> AdvancementResult:
            self._require_step(AdvancementStep.SELECT_ABILITY)
            ability = self._selected_ability
            if ability is None and self._available_abilities:
                raise ValidationError("Please select a heroic ability.", field_name="ability")

            if ability is not None:
                repeatable = {name.upper() for name in self._settings.repeatable_abilities}
                self._persist(
                    CharacterMutation.ability_grant(
                        self.character_id,
                        ability.name,
                        allow_duplicate=ability.name.upper() in repeatable,
                    )
                )
                text = f"Gained heroic ability {ability.name}."
            else:
                logger.warning("No heroic ability available to grant", skill=self._pending_ability_grant)
                text = "No heroic ability is available."

            self._pending_ability_grant = None
            self._selected_ability = None
            self._available_abilities = []
            self._transition(AdvancementStep.ROLL_SKILLS)
            return self._ok(f"{text} {self._advance_cursor_or_finish()}")

        return self._execute("confirm_ability", handler)

    # =========================================================================
    # Rolling
    # =========================================================================

    def request_roll(self) -> AdvancementResult:
        """Ask for a roll against the current target.

        The returned result carries the pending roll. A skill already at the
        maximum is skipped instead.
        """

        def handler() -> AdvancementResult:
            prepared = self._prepare_roll()
            if prepared is None:
                entry = self.current_entry
                assert entry is not None
                return self._ok(entry.message or "")
            context, entry = prepared
            target = self._roll_target(context, entry)
            label = f"Advancement Roll: {entry.skill} (d20 vs > {target})"
            self._pending_roll = PendingRoll(context=context, skill=entry.skill, target=target, label=label)
            entry.status = RollStatus.PROCESSING
            logger.info("Roll requested", skill=entry.skill, target=target, context=context)
            return self._ok(label)

        return self._execute("request_roll", handler)

    def complete_roll(self, value: int) -> AdvancementResult:
        """Resolve the pending roll with the drawn value."""

        def handler() -> AdvancementResult:
            self._require_open()
            pending = self._pending_roll
            if pending is None:
                raise MissingDataError("No roll is pending", details={"step": self._step.value})
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError("Roll value must be an integer", field_name="value", invalid_value=value)
            entry = self.current_entry
            if entry is None or entry.skill != pending.skill:
                raise MissingDataError("Roll context is missing skill information")
            self._pending_roll = None
            return self._resolve(pending.context, entry, pending.target, value)

        return self._execute("complete_roll", handler)

    def cancel_roll(self) -> AdvancementResult:
        """Withdraw the pending roll without resolving it."""

        def handler() -> AdvancementResult:
            self._require_open()
            if self._pending_roll is None:
                raise MissingDataError("No roll is pending", details={"step": self._step.value})
            entry = self.current_entry
            if entry is not None and entry.status == RollStatus.PROCESSING:
                entry.status = RollStatus.NOT_STARTED
            logger.info("Roll cancelled", skill=self._pending_roll.skill)
            self._pending_roll = None
            return self._ok("Roll cancelled.")

        return self._execute("cancel_roll", handler)

    def roll(self, roller: AdvancementRoller | None = None) -> AdvancementResult:
        """Request, draw and complete a roll in one go."""
        requested = self.request_roll()
        pending = requested.pending_roll
        if not requested.success or pending is None:
            return requested

        dice = roller or self._roller
        try:
            if dice is None:
                dice = self._roller = DiceRoller(die_expression=self._settings.die_expression)
            drawn = dice.roll_advancement(pending.target, pending.skill)
        except CompanionError as exc:
            self.cancel_roll()
            return self._failure(exc.message)
        return self.complete_roll(drawn.total)

    def manual_advance(self) -> AdvancementResult:
        """Advance the current target without rolling; always succeeds."""

        def handler() -> AdvancementResult:
            prepared = self._prepare_roll()
            if prepared is None:
                entry = self.current_entry
                assert entry is not None
                return self._ok(entry.message or "")
            context, entry = prepared
            return self._resolve(context, entry, self._roll_target(context, entry), None)

        return self._execute("manual_advance", handler)

    # =========================================================================
    # Study
    # =========================================================================

    def choose_study_type(self, study_type: StudyType | str) -> AdvancementResult:
        """Pick teacher study, spell study or a new school."""

        def handler() -> AdvancementResult:
            self._require_step(AdvancementStep.SELECT_STUDY_TYPE)
            try:
                chosen = StudyType(study_type)
            except ValueError as exc:
                raise ValidationError(
                    "Invalid study type selected.",
                    field_name="study_type",
                    invalid_value=study_type,
                ) from exc
            character = self._character()

            if chosen == StudyType.TEACHER:
                self._study_skill_selected = None
                self._transition(AdvancementStep.STUDY_TEACHER_SELECT_SKILL)
                if character.study_skill:
                    return self._ok(f"Currently studying {character.study_skill}.")
                return self._ok("Choose a skill to study with a teacher.")

            if chosen == StudyType.MAGIC:
                if not character.has_magic_school:
                    raise ValidationError(
                        "Character must belong to a Magic School to study magic.",
                        field_name="magic_school_id",
                    )
                schools = self._load_schools()
                spells = self._load_spells()
                self._school_name = resolve_school_name(character, schools)
                self._learnable_spells = filter_learnable_spells(spells, character, self._school_name, schools)
                self._selected_spell = None
                self._transition(AdvancementStep.STUDY_MAGIC_SELECT_SPELL)
                return self._ok(f"{len(self._learnable_spells)} spell(s) can be learned.")

            talent = self._settings.magic_talent_ability
            if not can_learn_new_school(character, talent):
                raise ValidationError(
                    f"Learning a new school requires an unused {talent} ability.",
                    field_name="study_type",
                    invalid_value=chosen.value,
                )
            self._learnable_schools = learnable_schools(character, self._load_schools())
            self._selected_school = None
            self._transition(AdvancementStep.STUDY_MAGIC_SELECT_SCHOOL)
            return self._ok(f"{len(self._learnable_schools)} school(s) can be learned.")

        return self._execute("choose_study_type", handler)

    def select_study_skill(self, skill_name: str) -> AdvancementResult:
        """Choose the skill to study with a teacher."""

        def handler() -> AdvancementResult:
            self._require_step(AdvancementStep.STUDY_TEACHER_SELECT_SKILL)
            info = self._find_skill(skill_name)
            if info.at_max:
                raise ValidationError(
                    f"{info.name} is already at max level ({MAX_SKILL_LEVEL})",
                    field_name="skill",
                    invalid_value=info.name,
                )
            self._study_skill_selected = info.name
            return self._ok(f"Selected {info.name} for study.")

        return self._execute("select_study_skill", handler)

    def confirm_study_skill(self) -> AdvancementResult:
        """Record the selected skill as under study and move to its roll."""

        def handler() -> AdvancementResult:
            self._require_step(AdvancementStep.STUDY_TEACHER_SELECT_SKILL)
            if self._study_skill_selected is None:
                raise ValidationError("Please select a skill to study.", field_name="skill")
            current = self._character().study_skill
            if current:
                raise ValidationError(
                    f"Already studying {current}. Finish that study first.",
                    field_name="skill",
                    invalid_value=self._study_skill_selected,
                )
            skill = self._study_skill_selected
            self._persist(CharacterMutation.study_skill(self.character_id, skill))
            self._study_entry = QueuedSkill(skill=skill)
            self._transition(AdvancementStep.STUDY_TEACHER_ROLL_SKILL)
            self._skip_if_maxed(self._study_entry)
            return self._ok(self._study_entry.message or f"Studying {skill} with a teacher.")

        return self._execute("confirm_study_skill", handler)

    def resume_study(self) -> AdvancementResult:
        """Continue with the skill already under study."""

        def handler() -> AdvancementResult:
            self._require_step(AdvancementStep.STUDY_TEACHER_SELECT_SKILL)
            skill = self._character().study_skill
            if not skill:
                raise ValidationError("No skill is under study.", field_name="skill")
            self._study_entry = QueuedSkill(skill=skill)
            self._skip_if_maxed(self._study_entry)
            self._transition(AdvancementStep.STUDY_TEACHER_ROLL_SKILL)
            return self._ok(self._study_entry.message or f"Continuing study of {skill}.")

        return self._execute("resume_study", handler)

    def select_spell(self, spell_name: str) -> AdvancementResult:
        """Choose one of the learnable spells."""

        def handler() -> AdvancementResult:
            self._require_step(AdvancementStep.STUDY_MAGIC_SELECT_SPELL)
            wanted = spell_name.strip().upper()
            for spell in self._learnable_spells:
                if spell.name.upper() == wanted:
                    self._selected_spell = spell
                    return self._ok(f"Selected {spell.name}.")
            raise ValidationError(f"Spell not learnable: {spell_name}", field_name="spell", invalid_value=spell_name)

        return self._execute("select_spell", handler)

    def confirm_spell(self) -> AdvancementResult:
        """Learn the selected spell and close the session."""

        def handler() -> AdvancementResult:
            self._require_step(AdvancementStep.STUDY_MAGIC_SELECT_SPELL)
            spell = self._selected_spell
            if spell is None:
                raise ValidationError("Please select a spell to learn.", field_name="spell")
            self._persist(CharacterMutation.spell_grant(self.character_id, spell.name))
            self._close()
            return self._ok(f"Learned {spell.name}.")

        return self._execute("confirm_spell", handler)

    def select_school(self, school_name: str) -> AdvancementResult:
        """Choose a school to learn."""

        def handler() -> AdvancementResult:
            self._require_step(AdvancementStep.STUDY_MAGIC_SELECT_SCHOOL)
            wanted = school_name.strip().upper()
            for school in self._learnable_schools:
                if school.name.upper() == wanted:
                    self._selected_school = school
                    return self._ok(f"Selected {school.name}.")
            raise ValidationError(
                f"School not learnable: {school_name}",
                field_name="school",
                invalid_value=school_name,
            )

        return self._execute("select_school", handler)

    def begin_school_study(self) -> AdvancementResult:
        """Start the roll to learn the selected school."""

        def handler() -> AdvancementResult:
            self._require_step(AdvancementStep.STUDY_MAGIC_SELECT_SCHOOL)
            school = self._selected_school
            if school is None:
                raise ValidationError("Please select a school to learn.", field_name="school")
            skill = canonical_skill_name(school.name) or school.name
            self._school_entry = QueuedSkill(skill=skill)
            self._transition(AdvancementStep.STUDY_MAGIC_ROLL_SCHOOL)
            return self._ok(f"Roll {self._settings.school_learning_attribute} to learn {school.name}.")

        return self._execute("begin_school_study", handler)

    def finish_study(self) -> AdvancementResult:
        """Close the session after a study roll."""

        def handler() -> AdvancementResult:
            self._require_step(AdvancementStep.STUDY_TEACHER_ROLL_SKILL, AdvancementStep.STUDY_MAGIC_ROLL_SCHOOL)
            self._require_no_pending_roll()
            entry = self.current_entry
            assert entry is not None
            if not entry.status.is_processed:
                if self._step != AdvancementStep.STUDY_TEACHER_ROLL_SKILL or not self._skip_if_maxed(entry):
                    raise ValidationError(f"Roll or advance {entry.skill} first.", field_name="skill")
            self._close()
            return self._ok(entry.message or "Study finished.")

        return self._execute("finish_study", handler)

    # =========================================================================
    # Navigation
    # =========================================================================

    def go_back(self) -> AdvancementResult:
        """Return to the previous selection step."""

        def handler() -> AdvancementResult:
            self._require_step(*_BACK_STEPS)
            self._require_no_pending_roll()
            previous = _BACK_STEPS[self._step]
            if self._step == AdvancementStep.SELECT_SKILLS:
                self._selected_skills = {}
            self._transition(previous)
            return self._ok()

        return self._execute("go_back", handler)

    def close(self) -> AdvancementResult:
        """Close the wizard, discarding all session state.

        Closing from Finished also clears the skills marked during play.
        """
        if self._closed:
            return self._ok()
        bind_context(character_id=self.character_id, action="close")
        try:
            if self._step == AdvancementStep.FINISHED:
                self._marks.clear()
                logger.info("Cleared marked skills")
            self._reset_scratch()
            self._close()
            return self._ok()
        except Exception as exc:
            logger.exception("Failed to clear marked skills")
            self._reset_scratch()
            self._close()
            return self._ok(error=f"Failed to clear marked skills: {exc}")
        finally:
            clear_context()


__all__ = [
    "AdvancementResult",
    "AdvancementSession",
    "PendingRoll",
    "QueuedSkill",
]
