"""Tests for application settings."""

import pytest
from pydantic import ValidationError

from appforge.core.config import Settings, get_settings


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("APPFORGE_DATABASE_URL", raising=False)
        monkeypatch.delenv("APPFORGE_SECRET_KEY", raising=False)

        settings = Settings(_env_file=None)

        assert settings.app_name == "AppForge"
        assert settings.database_url == "sqlite:///./appforge.db"
        assert settings.algorithm == "HS256"
        assert settings.access_token_expire_minutes == 30
        assert settings.log_level == "INFO"
        assert settings.log_to_file is False
        assert settings.log_max_bytes == 10485760
        assert settings.log_backup_count == 5

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("APPFORGE_DATABASE_URL", "postgresql://db/appforge")
        monkeypatch.setenv("APPFORGE_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("APPFORGE_DEBUG", "true")

        settings = Settings(_env_file=None)

        assert settings.database_url == "postgresql://db/appforge"
        assert settings.log_level == "DEBUG"
        assert settings.debug is True

    def test_unprefixed_env_is_ignored(self, monkeypatch):
        monkeypatch.delenv("APPFORGE_DATABASE_URL", raising=False)
        monkeypatch.setenv("DATABASE_URL", "postgresql://elsewhere/db")

        assert Settings(_env_file=None).database_url == "sqlite:///./appforge.db"

    def test_extra_env_vars_allowed(self, monkeypatch):
        monkeypatch.setenv("APPFORGE_UNKNOWN_OPTION", "1")

        Settings(_env_file=None)

    def test_invalid_type_rejected(self, monkeypatch):
        monkeypatch.setenv("APPFORGE_ACCESS_TOKEN_EXPIRE_MINUTES", "soon")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_cors_origins_list(self):
        settings = Settings(_env_file=None, cors_origins="http://a.test, http://b.test,")

        assert settings.cors_origins_list == ["http://a.test", "http://b.test"]

    @pytest.mark.parametrize("url,expected", [
        ("sqlite://", True),
        ("sqlite:///./appforge.db", True),
        ("postgresql://db/appforge", False),
    ])
    def test_is_sqlite(self, url, expected):
        assert Settings(_env_file=None, database_url=url).is_sqlite is expected

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()
