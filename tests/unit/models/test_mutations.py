"""Tests for character mutations."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from campaign_companion.core.exceptions import ValidationError
from campaign_companion.models.character import CharacterSnapshot
from campaign_companion.models.enums import MutationType
from campaign_companion.models.mutations import CharacterMutation, apply_mutation


class TestCharacterMutation:
    """Tests for mutation construction."""

    def test_factories_set_type_and_payload(self) -> None:
        """Test the factory methods build the expected payloads."""
        increase = CharacterMutation.skill_increase("c1", "Axes", 13)
        grant = CharacterMutation.ability_grant("c1", "Magic Talent", allow_duplicate=True)

        assert increase.mutation_type == MutationType.SKILL_INCREASE
        assert increase.payload == {"skill": "Axes", "level": 13}
        assert grant.payload == {"ability": "Magic Talent", "allow_duplicate": True}

    def test_mutations_have_unique_ids(self) -> None:
        """Test each mutation gets its own id."""
        first = CharacterMutation.spell_grant("c1", "Light")
        second = CharacterMutation.spell_grant("c1", "Light")

        assert first.mutation_id != second.mutation_id

    def test_describe(self) -> None:
        """Test the short descriptions."""
        assert CharacterMutation.skill_increase("c1", "Axes", 13).describe() == "Axes -> 13"
        assert CharacterMutation.school_grant("c1", "Animism", 5).describe() == "school skill Animism at 5"
        assert CharacterMutation.study_skill("c1", None).describe() == "study cleared"


class TestApplyMutation:
    """Tests for applying mutations to a snapshot."""

    def test_skill_increase(self, make_character: Callable[..., CharacterSnapshot]) -> None:
        """Test a skill is set to its new level."""
        character = make_character(skill_levels={"Axes": 12})

        updated = apply_mutation(character, CharacterMutation.skill_increase(character.id, "Axes", 13))

        assert updated.skill_levels["Axes"] == 13
        assert character.skill_levels["Axes"] == 12

    def test_skill_level_clamped(self, make_character: Callable[..., CharacterSnapshot]) -> None:
        """Test levels stay within 0 and 18."""
        character = make_character()

        updated = apply_mutation(character, CharacterMutation.skill_increase(character.id, "Axes", 25))

        assert updated.skill_levels["Axes"] == 18

    def test_increase_of_studied_skill_ends_study(self, make_character: Callable[..., CharacterSnapshot]) -> None:
        """Test raising the skill under study clears the teacher."""
        character = make_character(teacher={"skill_under_study": "Bows"})

        other = apply_mutation(character, CharacterMutation.skill_increase(character.id, "Axes", 6))
        studied = apply_mutation(character, CharacterMutation.skill_increase(character.id, "Bows", 6))

        assert other.study_skill == "Bows"
        assert studied.study_skill is None

    def test_school_grant_keeps_study(self, make_character: Callable[..., CharacterSnapshot]) -> None:
        """Test a school grant sets the level without touching the teacher."""
        character = make_character(teacher={"skill_under_study": "Animism"})

        updated = apply_mutation(character, CharacterMutation.school_grant(character.id, "Animism", 5))

        assert updated.skill_levels["Animism"] == 5
        assert updated.study_skill == "Animism"

    def test_ability_grant_skips_duplicates(self, make_character: Callable[..., CharacterSnapshot]) -> None:
        """Test a held ability is not granted twice unless allowed."""
        character = make_character(heroic_abilities=["Magic Talent"])

        same = apply_mutation(character, CharacterMutation.ability_grant(character.id, "Magic Talent"))
        twice = apply_mutation(
            character,
            CharacterMutation.ability_grant(character.id, "Magic Talent", allow_duplicate=True),
        )

        assert same.heroic_abilities == ["Magic Talent"]
        assert twice.heroic_abilities == ["Magic Talent", "Magic Talent"]

    def test_spell_grant(self, mage: CharacterSnapshot) -> None:
        """Test a new spell joins the general list."""
        updated = apply_mutation(mage, CharacterMutation.spell_grant(mage.id, "Fireball"))
        unchanged = apply_mutation(mage, CharacterMutation.spell_grant(mage.id, "light"))

        assert updated.spells.general == ["Light", "Fireball"]
        assert updated.spells.school == mage.spells.school
        assert unchanged.spells.general == ["Light"]

    def test_study_skill_set_and_clear(self, make_character: Callable[..., CharacterSnapshot]) -> None:
        """Test the teacher record is set and cleared."""
        character = make_character()

        studying = apply_mutation(character, CharacterMutation.study_skill(character.id, "Bows"))
        cleared = apply_mutation(studying, CharacterMutation.study_skill(character.id, None))

        assert studying.study_skill == "Bows"
        assert cleared.teacher is None

    def test_wrong_character_rejected(self, make_character: Callable[..., CharacterSnapshot]) -> None:
        """Test a mutation for another character is refused."""
        character = make_character()

        with pytest.raises(ValidationError) as exc_info:
            apply_mutation(character, CharacterMutation.skill_increase("someone-else", "Axes", 6))

        assert exc_info.value.details["field_name"] == "character_id"

    def test_incomplete_payload_rejected(self, make_character: Callable[..., CharacterSnapshot]) -> None:
        """Test a payload missing its skill is refused."""
        character = make_character()
        mutation = CharacterMutation(
            character_id=character.id,
            mutation_type=MutationType.SKILL_INCREASE,
            payload={"level": 6},
        )

        with pytest.raises(ValidationError):
            apply_mutation(character, mutation)
