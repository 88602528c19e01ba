"""Tests for configuration management."""

from __future__ import annotations

from pathlib import Path

import pytest

from campaign_companion.core.config import (
    AdvancementSettings,
    Settings,
    StorageSettings,
    clear_settings_cache,
    get_settings,
)
from campaign_companion.core.exceptions import ConfigurationError


class TestAdvancementSettings:
    """Tests for AdvancementSettings configuration."""

    def test_default_values(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test default advancement settings."""
        monkeypatch.chdir(tmp_path)

        settings = AdvancementSettings()

        assert settings.die_expression == "1d20"
        assert settings.magic_talent_ability == "Magic Talent"
        assert settings.repeatable_abilities == ["Magic Talent"]
        assert settings.school_learning_attribute == "INT"

    def test_die_expression_requires_die(self) -> None:
        """Test that a die expression without a die term is rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            AdvancementSettings(die_expression="20")

        assert exc_info.value.details["config_key"] == "die_expression"

    def test_blank_magic_talent_rejected(self) -> None:
        """Test that the talent ability name cannot be blank."""
        with pytest.raises(ConfigurationError) as exc_info:
            AdvancementSettings(magic_talent_ability="   ")

        assert "magic_talent_ability" in str(exc_info.value)

    def test_magic_talent_is_stripped(self) -> None:
        """Test surrounding whitespace is removed from the talent name."""
        settings = AdvancementSettings(magic_talent_ability="  Magic Talent ")

        assert settings.magic_talent_ability == "Magic Talent"


class TestStorageSettings:
    """Tests for StorageSettings configuration."""

    def test_custom_database_path(self, tmp_path: Path) -> None:
        """Test a custom database path."""
        settings = StorageSettings(database_path=tmp_path / "custom.db")

        assert settings.database_path == tmp_path / "custom.db"


class TestSettings:
    """Tests for main Settings configuration."""

    def test_default_settings(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test default settings initialization."""
        monkeypatch.chdir(tmp_path)

        settings = Settings()

        assert settings.app_name == "Campaign Companion"
        assert settings.debug is False
        assert settings.log_level == "INFO"
        assert settings.is_production is True
        assert settings.advancement.die_expression == "1d20"

    def test_environment_overrides(
        self,
        mock_env_vars: dict[str, str],
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test settings are read from environment variables."""
        monkeypatch.chdir(tmp_path)

        settings = Settings()

        assert settings.debug is True
        assert settings.log_level == "DEBUG"
        assert settings.is_production is False
        assert settings.storage.database_path == Path(mock_env_vars["CAMPAIGN_COMPANION_DATABASE_PATH"])


class TestGetSettings:
    """Tests for the cached settings accessor."""

    def test_settings_are_cached(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test get_settings returns the same instance."""
        monkeypatch.chdir(tmp_path)

        assert get_settings() is get_settings()

    def test_cache_clear_reloads(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test clearing the cache picks up new environment values."""
        monkeypatch.chdir(tmp_path)
        first = get_settings()

        monkeypatch.setenv("CAMPAIGN_COMPANION_LOG_LEVEL", "ERROR")
        clear_settings_cache()
        second = get_settings()

        assert second is not first
        assert second.log_level == "ERROR"

    def test_invalid_environment_raises_configuration_error(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test invalid settings surface as ConfigurationError."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("CAMPAIGN_COMPANION_LOG_LEVEL", "LOUD")

        with pytest.raises(ConfigurationError):
            get_settings()
