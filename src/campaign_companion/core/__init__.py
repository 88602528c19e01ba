"""Core module providing configuration, logging, and base exceptions.

Exports:
    Exceptions:
        CompanionError: Base exception for all application errors.
        ConfigurationError: Configuration-related errors.
        ValidationError: User input validation errors.

    Configuration:
        Settings: Main application settings class.
        get_settings: Get the settings singleton.
        clear_settings_cache: Force settings reload.

    Logging:
        configure_logging: Set up application logging.
        get_logger: Get a configured logger instance.
        bind_context: Add context to log entries.
        clear_context: Clear logging context.
"""

from __future__ import annotations

from campaign_companion.core.config import (
    AdvancementSettings,
    Settings,
    StorageSettings,
    clear_settings_cache,
    get_settings,
)
from campaign_companion.core.exceptions import (
    AdvancementError,
    CatalogError,
    CompanionError,
    ConfigurationError,
    DiceRollError,
    InvalidAdvancementStateError,
    MissingDataError,
    PersistenceError,
    RollInProgressError,
    UnknownSkillError,
    ValidationError,
)
from campaign_companion.core.logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)


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
    # Configuration
    "Settings",
    "AdvancementSettings",
    "StorageSettings",
    "get_settings",
    "clear_settings_cache",
    # Logging
    "configure_logging",
    "get_logger",
    "bind_context",
    "clear_context",
]
