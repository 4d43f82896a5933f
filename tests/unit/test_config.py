"""
Unit tests for library settings.

Settings are read from APIRESULT_* environment variables; the autouse
fixture in conftest clears them and the settings cache around each test.
"""

from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from apiresult.config import ApiResultSettings, get_settings


class TestApiResultSettings:
    def test_defaults(self) -> None:
        """
        GIVEN no APIRESULT_* variables
        WHEN settings are loaded
        THEN console logging at INFO with child failure logging enabled is used.
        """
        settings = ApiResultSettings(_env_file=None)

        assert settings.log_level == "INFO"
        assert settings.log_renderer == "console"
        assert settings.log_child_failures is True
        assert settings.log_level_number == logging.INFO

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """
        GIVEN APIRESULT_* variables
        WHEN settings are loaded
        THEN every field is taken from the environment.
        """
        monkeypatch.setenv("APIRESULT_LOG_LEVEL", "debug")
        monkeypatch.setenv("APIRESULT_LOG_RENDERER", "json")
        monkeypatch.setenv("APIRESULT_LOG_CHILD_FAILURES", "false")

        settings = ApiResultSettings(_env_file=None)

        assert settings.log_level == "DEBUG"
        assert settings.log_renderer == "json"
        assert settings.log_child_failures is False

    def test_rejects_unknown_level(self) -> None:
        """
        GIVEN an unknown log level name
        WHEN settings are built
        THEN validation fails.
        """
        with pytest.raises(ValidationError, match="Unknown log level"):
            ApiResultSettings(log_level="LOUD", _env_file=None)

    def test_rejects_unknown_renderer(self) -> None:
        with pytest.raises(ValidationError):
            ApiResultSettings(log_renderer="xml", _env_file=None)


class TestGetSettings:
    def test_is_cached(self) -> None:
        assert get_settings() is get_settings()

    def test_cache_clear_picks_up_changes(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """
        GIVEN cached settings
        WHEN the environment changes and the cache is cleared
        THEN the new value is visible.
        """
        assert get_settings().log_renderer == "console"

        monkeypatch.setenv("APIRESULT_LOG_RENDERER", "json")
        get_settings.cache_clear()

        assert get_settings().log_renderer == "json"
