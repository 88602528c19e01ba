"""Configuration management for the Campaign Companion.

Centralized configuration using pydantic-settings, supporting environment
variables, .env files, and runtime overrides.

Example:
    >>> from campaign_companion.core.config import get_settings
    >>> settings = get_settings()
    >>> settings.advancement.die_expression
    '1d20'

Environment Variables:
    CAMPAIGN_COMPANION_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    CAMPAIGN_COMPANION_JSON_LOGS: Emit JSON log lines
    CAMPAIGN_COMPANION_DATABASE_PATH: Path to the SQLite character store
    CAMPAIGN_COMPANION_ADVANCEMENT_DIE_EXPRESSION: Die rolled for advancement
    CAMPAIGN_COMPANION_ADVANCEMENT_MAGIC_TALENT_ABILITY: Ability counted for new schools
"""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from campaign_companion.core.constants import DEFAULT_MAGIC_TALENT_ABILITY
from campaign_companion.core.exceptions import ConfigurationError


_DIE_PATTERN = re.compile(r"\d*d\d+", re.IGNORECASE)


class AdvancementSettings(BaseSettings):
    """Configuration for the advancement rules.

    Attributes:
        die_expression: Dice expression rolled for every advancement attempt.
        magic_talent_ability: Heroic ability counted against known schools.
        repeatable_abilities: Abilities that may be granted more than once.
        school_learning_attribute: Attribute rolled against to learn a new school.
    """

    model_config = SettingsConfigDict(
        env_prefix="CAMPAIGN_COMPANION_ADVANCEMENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    die_expression: str = Field(
        default="1d20",
        description="Dice rolled for advancement",
    )
    magic_talent_ability: str = Field(
        default=DEFAULT_MAGIC_TALENT_ABILITY,
        description="Ability whose copies allow learning new schools",
    )
    repeatable_abilities: list[str] = Field(
        default_factory=lambda: [DEFAULT_MAGIC_TALENT_ABILITY],
        description="Abilities that can be granted more than once",
    )
    school_learning_attribute: Literal["STR", "AGL", "INT", "CHA", "CON", "WIL"] = Field(
        default="INT",
        description="Attribute used as the target when learning a school",
    )

    @field_validator("die_expression", mode="after")
    @classmethod
    def validate_die_expression(cls, value: str) -> str:
        """Ensure the advancement roll actually rolls a die.

        Raises:
            ConfigurationError: If no die term is present.
        """
        if not _DIE_PATTERN.search(value):
            raise ConfigurationError(
                f"die_expression must contain a die term, got {value!r}",
                config_key="die_expression",
            )
        return value

    @field_validator("magic_talent_ability", mode="after")
    @classmethod
    def validate_magic_talent(cls, value: str) -> str:
        """Reject a blank ability name.

        Raises:
            ConfigurationError: If the name is empty.
        """
        if not value.strip():
            raise ConfigurationError(
                "magic_talent_ability must not be blank",
                config_key="magic_talent_ability",
            )
        return value.strip()


class StorageSettings(BaseSettings):
    """Configuration for the local character store.

    Attributes:
        database_path: Path to the SQLite database file.
    """

    model_config = SettingsConfigDict(
        env_prefix="CAMPAIGN_COMPANION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_path: Path = Field(
        default=Path.home() / ".campaign_companion" / "companion.db",
        description="Path to SQLite database",
    )


class Settings(BaseSettings):
    """Main application settings aggregating all configuration domains.

    Attributes:
        app_name: Application name.
        app_version: Application version string.
        debug: Enable debug mode.
        log_level: Application logging level.
        json_logs: Emit JSON formatted logs.
        advancement: Advancement rule settings.
        storage: Storage settings.
    """

    model_config = SettingsConfigDict(
        env_prefix="CAMPAIGN_COMPANION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    app_name: str = Field(
        default="Campaign Companion",
        description="Application name",
    )
    app_version: str = Field(
        default="0.1.0",
        description="Application version",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    json_logs: bool = Field(
        default=False,
        description="Emit JSON log lines",
    )

    advancement: AdvancementSettings = Field(default_factory=AdvancementSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return not self.debug


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        The application Settings instance.

    Raises:
        ConfigurationError: If configuration is missing or invalid.
    """
    try:
        return Settings()
    except ConfigurationError:
        raise
    except Exception as exc:
        raise ConfigurationError(
            f"Failed to load application settings: {exc}",
            details={"original_error": str(exc)},
        ) from exc


def clear_settings_cache() -> None:
    """Clear the settings cache, forcing a reload on next access."""
    get_settings.cache_clear()


__all__ = [
    "AdvancementSettings",
    "StorageSettings",
    "Settings",
    "get_settings",
    "clear_settings_cache",
]
