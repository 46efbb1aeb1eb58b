"""Tests for Strata's own settings."""

import os as _os
import typing as _typing
import unittest.mock as _mock

import pydantic as _pydantic
import pytest as _pytest

import strata.config as config
import strata.constants as constants


class TestSettingsDefaults:
    """Test Settings default values when environment is clean."""

    def test_defaults(self, isolated_env: _typing.Any) -> None:
        """Defaults come from the constants module."""
        with isolated_env:
            settings = config.Settings()
        assert settings.secret_pattern == constants.DEFAULT_SECRET_PATTERN
        assert settings.max_depth == constants.DEFAULT_MAX_DEPTH
        assert settings.log_level == "WARNING"

    def test_default_pattern_is_case_insensitive(self, isolated_env: _typing.Any) -> None:
        """The compiled pattern ignores case."""
        with isolated_env:
            pattern = config.Settings().compiled_secret_pattern()
        assert pattern.search("DB_PASSWORD")


class TestSettingsEnvironment:
    """Test overrides through STRATA_* variables."""

    def test_env_override(self, clean_env: dict[str, str]) -> None:
        """Environment variables override the defaults."""
        env = {
            **clean_env,
            "STRATA_SECRET_PATTERN": "token",
            "STRATA_MAX_DEPTH": "50",
            "STRATA_LOG_LEVEL": "debug",
        }
        with _mock.patch.dict(_os.environ, env, clear=True):
            settings = config.Settings()
        assert settings.secret_pattern == "token"
        assert settings.max_depth == 50
        assert settings.log_level == "DEBUG"

    def test_constructor_wins(self, clean_env: dict[str, str]) -> None:
        """Explicit arguments take precedence over the environment."""
        env = {**clean_env, "STRATA_MAX_DEPTH": "50"}
        with _mock.patch.dict(_os.environ, env, clear=True):
            settings = config.Settings(max_depth=10)
        assert settings.max_depth == 10

    @_pytest.mark.parametrize(
        ("name", "value"),
        [
            ("STRATA_SECRET_PATTERN", "(unclosed"),
            ("STRATA_MAX_DEPTH", "0"),
            ("STRATA_MAX_DEPTH", "deep"),
            ("STRATA_LOG_LEVEL", "loud"),
        ],
    )
    def test_invalid_values(self, clean_env: dict[str, str], name: str, value: str) -> None:
        """Invalid settings are rejected."""
        with (
            _mock.patch.dict(_os.environ, {**clean_env, name: value}, clear=True),
            _pytest.raises(_pydantic.ValidationError),
        ):
            config.Settings()

    def test_unrelated_variables_ignored(self, clean_env: dict[str, str]) -> None:
        """Unknown STRATA_* variables do not fail."""
        env = {**clean_env, "STRATA_SOMETHING_ELSE": "1"}
        with _mock.patch.dict(_os.environ, env, clear=True):
            config.Settings()
