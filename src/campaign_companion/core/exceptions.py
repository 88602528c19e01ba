"""Custom exception hierarchy for the Campaign Companion advancement core.

All exceptions inherit from CompanionError, enabling unified error handling
at the session boundary while preserving domain-specific context. The
advancement session converts these into failed results instead of letting
them escape a public operation.

Example:
    >>> from campaign_companion.core.exceptions import UnknownSkillError
    >>> raise UnknownSkillError("No attribute for skill", skill_name="Juggling")
"""

from __future__ import annotations

from typing import Any


class CompanionError(Exception):
    """Base exception for all Campaign Companion errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary containing additional error context.
    """

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        """Initialize the base exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary containing additional error context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the exception message with optional details.

        Returns:
            Formatted error message including any provided details.
        """
        if self.details:
            detail_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} [{detail_str}]"
        return self.message

    def __repr__(self) -> str:
        """Return a detailed string representation of the exception."""
        return f"{self.__class__.__name__}(message={self.message!r}, details={self.details!r})"


# =============================================================================
# Configuration & Validation Exceptions
# =============================================================================


class ConfigurationError(CompanionError):
    """Raised when application configuration is invalid."""

    def __init__(
        self,
        message: str,
        *,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize configuration error with config key context.

        Args:
            message: Human-readable error description.
            config_key: The configuration key that caused the error.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if config_key:
            combined_details["config_key"] = config_key
        super().__init__(message, details=combined_details)


class ValidationError(CompanionError):
    """Raised when user input fails validation.

    Marks of zero, a wrong skill selection count or a missing study skill
    all end up here. The session stays in its current step.
    """

    def __init__(
        self,
        message: str,
        *,
        field_name: str | None = None,
        invalid_value: Any | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize validation error with field context.

        Args:
            message: Human-readable error description.
            field_name: Name of the field that failed validation.
            invalid_value: The value that failed validation.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if field_name:
            combined_details["field_name"] = field_name
        if invalid_value is not None:
            combined_details["invalid_value"] = invalid_value
        super().__init__(message, details=combined_details)


# =============================================================================
# Advancement Domain Exceptions
# =============================================================================


class AdvancementError(CompanionError):
    """Base exception for advancement and prerequisite errors."""


class InvalidAdvancementStateError(AdvancementError):
    """Raised when an operation is not allowed in the current step."""

    def __init__(
        self,
        message: str,
        *,
        current_step: str | None = None,
        expected_steps: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize invalid state error with step context.

        Args:
            message: Human-readable error description.
            current_step: The step the session was in.
            expected_steps: Steps in which the operation is allowed.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if current_step:
            combined_details["current_step"] = current_step
        if expected_steps:
            combined_details["expected_steps"] = expected_steps
        super().__init__(message, details=combined_details)


class RollInProgressError(AdvancementError):
    """Raised when a roll is requested or navigation attempted while one is pending."""


class MissingDataError(AdvancementError):
    """Raised when the character snapshot or roll context is missing data."""


class UnknownSkillError(AdvancementError):
    """Raised when a skill has no governing attribute and no explicit level."""

    def __init__(
        self,
        message: str,
        *,
        skill_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize unknown skill error.

        Args:
            message: Human-readable error description.
            skill_name: The unmapped skill name.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if skill_name:
            combined_details["skill_name"] = skill_name
        super().__init__(message, details=combined_details)


# =============================================================================
# Collaborator Exceptions
# =============================================================================


class CatalogError(CompanionError):
    """Raised when an ability, spell or school catalog cannot be loaded."""

    def __init__(
        self,
        message: str,
        *,
        catalog: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize catalog error.

        Args:
            message: Human-readable error description.
            catalog: Which catalog failed ('abilities', 'spells', 'schools').
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if catalog:
            combined_details["catalog"] = catalog
        super().__init__(message, details=combined_details)


class PersistenceError(CompanionError):
    """Raised when a character mutation cannot be stored."""

    def __init__(
        self,
        message: str,
        *,
        character_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize persistence error.

        Args:
            message: Human-readable error description.
            character_id: The character the mutation targeted.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if character_id:
            combined_details["character_id"] = character_id
        super().__init__(message, details=combined_details)


class DiceRollError(CompanionError):
    """Raised when a dice expression cannot be rolled."""

    def __init__(
        self,
        message: str,
        *,
        expression: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize dice roll error with expression context.

        Args:
            message: Human-readable error description.
            expression: The dice expression that caused the error.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if expression:
            combined_details["expression"] = expression
        super().__init__(message, details=combined_details)


__all__ = [
    # Base exception
    "CompanionError",
    # Configuration exceptions
    "ConfigurationError",
    "ValidationError",
    # Advancement exceptions
    "AdvancementError",
    "InvalidAdvancementStateError",
    "RollInProgressError",
    "MissingDataError",
    "UnknownSkillError",
    # Collaborator exceptions
    "CatalogError",
    "PersistenceError",
    "DiceRollError",
]
