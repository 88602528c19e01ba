"""Dice rolling for advancement attempts.

Rolls go through the d20 library. The advancement roll uses the configured
die (1d20 by default) and is compared against the skill's level by the
advancement session.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import d20

from campaign_companion.core.config import get_settings
from campaign_companion.core.exceptions import DiceRollError
from campaign_companion.core.logging import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class DiceExpression:
    """A rolled dice expression.

    Attributes:
        expression: The original dice expression string.
        total: The total result of the roll.
        dice: Individual dice results.
        modifier: Static modifier applied.
        label: What the roll was for, if given.
    """

    expression: str
    total: int
    dice: list[int]
    modifier: int
    label: str | None = None


class DiceRoller:
    """Dice rolling backed by the d20 library.

    Example:
        >>> roller = DiceRoller()
        >>> result = roller.roll_advancement(12, "Bluffing")
        >>> result.total > 12
    """

    def __init__(self, *, die_expression: str | None = None, seed: int | None = None) -> None:
        """Initialize the dice roller.

        Args:
            die_expression: Dice rolled for advancement. Defaults to the
                configured expression.
            seed: Optional random seed for reproducible rolls.
        """
        self.die_expression = die_expression or get_settings().advancement.die_expression
        self._seed = seed
        if seed is not None:
            import random

            random.seed(seed)
        logger.info("DiceRoller initialized", die_expression=self.die_expression, seed=seed)

    def roll(self, expression: str, *, label: str | None = None) -> DiceExpression:
        """Roll dice according to the given expression.

        Args:
            expression: Dice expression (e.g., '1d20', '2d6+3').
            label: Optional description of the roll.

        Returns:
            DiceExpression containing roll results.

        Raises:
            DiceRollError: If the expression is invalid.
        """
        if not expression or not expression.strip():
            raise DiceRollError("Empty dice expression", expression=expression)

        logger.debug("Rolling dice", expression=expression, label=label)

        try:
            result: d20.RollResult = d20.roll(expression)
        except d20.RollError as exc:
            raise DiceRollError(f"Invalid dice expression: {exc}", expression=expression) from exc

        dice_values = self._extract_dice_values(result.expr)
        rolled = DiceExpression(
            expression=expression,
            total=result.total,
            dice=dice_values,
            modifier=result.total - sum(dice_values),
            label=label,
        )
        logger.info("Dice rolled", expression=expression, total=result.total, label=label)
        return rolled

    def _extract_dice_values(self, expr: Any) -> list[int]:
        """Extract kept dice values from a d20 expression tree."""
        values: list[int] = []

        def traverse(node: Any) -> None:
            if isinstance(node, d20.Dice):
                for die in node.values:
                    if die.kept:
                        values.append(die.number)
            elif hasattr(node, "children"):
                for child in node.children:
                    traverse(child)

        traverse(expr)
        return values

    def roll_advancement(self, target: int, label: str) -> DiceExpression:
        """Roll an advancement attempt.

        The roll succeeds when its total is strictly greater than ``target``;
        that comparison is left to the caller.

        Args:
            target: Current skill level or attribute rolled against.
            label: Skill (or school) being advanced.

        Returns:
            DiceExpression for the advancement die.
        """
        logger.debug("Advancement roll", target=target, label=label)
        return self.roll(self.die_expression, label=f"Advancement Roll: {label} (vs > {target})")


# Module-level convenience roller
_default_roller: DiceRoller | None = None


def roll(expression: str) -> DiceExpression:
    """Convenience function to roll dice.

    Example:
        >>> result = roll("1d20")
        >>> print(result.total)
    """
    global _default_roller  # noqa: PLW0603
    if _default_roller is None:
        _default_roller = DiceRoller()
    return _default_roller.roll(expression)


__all__ = [
    "DiceExpression",
    "DiceRoller",
    "roll",
]
