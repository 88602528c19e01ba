"""Prerequisite expressions for spells.

Spell prerequisites arrive as text in one of two grammars:

- a JSON-encoded expression tree, whose nodes are a discriminated union on
  the ``type`` field (``spell``, ``school``, ``anySchool``, ``skill``,
  ``attribute``, ``logical``);
- a legacy human-written string such as ``"Elementalism AND Light"``.

``parse_prerequisite`` decides which grammar applies once, returning a tagged
result that the evaluator consumes without sniffing the text again.

Example:
    >>> parsed = parse_prerequisite('{"type": "spell", "name": "Light"}')
    >>> isinstance(parsed, TreePrerequisite)
    True
    >>> parse_prerequisite("WIL 13")
    LegacyPrerequisite(expression='WIL 13')
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidatorFunctionWrapHandler, WrapValidator
from pydantic import ValidationError as PydanticValidationError

from campaign_companion.core.logging import get_logger


logger = get_logger(__name__)


# =============================================================================
# Tree Nodes
# =============================================================================


class PrerequisiteBase(BaseModel):
    """Fields shared by every prerequisite node."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    negate: bool = Field(default=False, description="Invert the node's result")


class SpellKnownPrerequisite(PrerequisiteBase):
    """Satisfied when the named spell is known."""

    type: Literal["spell"] = "spell"
    name: str


class SchoolMembershipPrerequisite(PrerequisiteBase):
    """Satisfied when the character belongs to the named school."""

    type: Literal["school"] = "school"
    name: str


class AnySchoolPrerequisite(PrerequisiteBase):
    """Satisfied when the character belongs to any school."""

    type: Literal["anySchool"] = "anySchool"


class SkillLevelPrerequisite(PrerequisiteBase):
    """Satisfied when a skill is at least ``value``."""

    type: Literal["skill"] = "skill"
    name: str
    value: int


class AttributeLevelPrerequisite(PrerequisiteBase):
    """Satisfied when an attribute is at least ``value``."""

    type: Literal["attribute"] = "attribute"
    name: str
    value: int


class LogicalPrerequisite(PrerequisiteBase):
    """AND/OR over child conditions.

    ``operator`` is kept as free text; anything other than AND or OR
    evaluates to False.
    """

    type: Literal["logical"] = "logical"
    operator: str = ""
    conditions: list[PrerequisiteNode] = Field(default_factory=list)


class UnknownPrerequisite(PrerequisiteBase):
    """A node with an unrecognized type or missing fields.

    Never satisfied on its own; ``negate`` still applies.
    """

    kind: str | None = None


def _unknown_on_failure(value: Any, handler: ValidatorFunctionWrapHandler) -> Any:
    if isinstance(value, UnknownPrerequisite):
        return value
    try:
        return handler(value)
    except PydanticValidationError:
        if not isinstance(value, dict):
            return UnknownPrerequisite()
        kind = value.get("type")
        logger.debug("Unreadable prerequisite node", kind=kind)
        return UnknownPrerequisite(
            negate=bool(value.get("negate")),
            kind=kind if isinstance(kind, str) else None,
        )


_KnownPrerequisite = Annotated[
    Union[
        SpellKnownPrerequisite,
        SchoolMembershipPrerequisite,
        AnySchoolPrerequisite,
        SkillLevelPrerequisite,
        AttributeLevelPrerequisite,
        LogicalPrerequisite,
    ],
    Field(discriminator="type"),
]

PrerequisiteNode = Annotated[_KnownPrerequisite, WrapValidator(_unknown_on_failure)]
"""A known node type, or ``UnknownPrerequisite`` when the data does not validate."""

LogicalPrerequisite.model_rebuild()

_NODE_ADAPTER: TypeAdapter[Any] = TypeAdapter(PrerequisiteNode)


# =============================================================================
# Parsed Source
# =============================================================================


@dataclass(frozen=True)
class TreePrerequisite:
    """A prerequisite given as a structured expression tree."""

    tree: PrerequisiteNode


@dataclass(frozen=True)
class LegacyPrerequisite:
    """A prerequisite given in the legacy ``A OR B AND C`` string grammar."""

    expression: str


@dataclass(frozen=True)
class EmptyPrerequisite:
    """No prerequisite; always satisfied."""


ParsedPrerequisite = TreePrerequisite | LegacyPrerequisite | EmptyPrerequisite


def parse_node(data: Any) -> PrerequisiteNode:
    """Validate a decoded JSON object as a prerequisite node.

    Nodes that do not validate, at any depth, become ``UnknownPrerequisite``.
    """
    return _NODE_ADAPTER.validate_python(data)


def parse_prerequisite(source: str | None) -> ParsedPrerequisite:
    """Classify and parse a prerequisite source string.

    Text starting with ``{`` is tried as a JSON tree. Anything that does not
    decode to an object with a ``type`` falls back to the legacy grammar,
    using the original text. Malformed nodes inside a tree are kept as
    ``UnknownPrerequisite`` leaves.

    Args:
        source: Raw prerequisite text, or None.

    Returns:
        The parsed prerequisite variant.
    """
    if source is None or not source.strip():
        return EmptyPrerequisite()

    stripped = source.strip()
    if stripped.startswith("{"):
        try:
            data = json.loads(stripped)
        except json.JSONDecodeError:
            logger.debug("Prerequisite is not valid JSON, using legacy grammar", source=stripped)
        else:
            if isinstance(data, dict) and data.get("type"):
                return TreePrerequisite(tree=parse_node(data))

    return LegacyPrerequisite(expression=source)


__all__ = [
    "PrerequisiteBase",
    "SpellKnownPrerequisite",
    "SchoolMembershipPrerequisite",
    "AnySchoolPrerequisite",
    "SkillLevelPrerequisite",
    "AttributeLevelPrerequisite",
    "LogicalPrerequisite",
    "UnknownPrerequisite",
    "PrerequisiteNode",
    "TreePrerequisite",
    "LegacyPrerequisite",
    "EmptyPrerequisite",
    "ParsedPrerequisite",
    "parse_node",
    "parse_prerequisite",
]
