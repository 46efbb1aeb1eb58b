"""
Settings for Strata itself, using pydantic-settings.

These are the knobs of the loader, not the configuration it loads:

  STRATA_SECRET_PATTERN=token|secret   # key names treated as secrets
  STRATA_MAX_DEPTH=256                 # merge recursion limit
  STRATA_LOG_LEVEL=DEBUG               # CLI log level
"""

import logging as _logging
import re as _re

import pydantic as _pydantic
import pydantic_settings as _pydantic_settings

import strata.constants as constants


class Settings(_pydantic_settings.BaseSettings):
    """
    Strata settings.

    All settings can be overridden via environment variables with the
    STRATA_ prefix. Constructor arguments take precedence over the
    environment.
    """

    model_config = _pydantic_settings.SettingsConfigDict(
        env_prefix=constants.ENV_PREFIX,
        extra="ignore",
    )

    secret_pattern: str = constants.DEFAULT_SECRET_PATTERN
    """Regular expression matched (case-insensitively) against key names."""

    max_depth: int = _pydantic.Field(default=constants.DEFAULT_MAX_DEPTH, ge=1)
    """Merge recursion limit."""

    log_level: str = "WARNING"
    """Log level name used by the CLI."""

    @_pydantic.field_validator("secret_pattern")
    @classmethod
    def _check_pattern(cls, value: str) -> str:
        try:
            _re.compile(value)
        except _re.error as e:
            raise ValueError(f"invalid secret pattern {value!r}: {e}") from e
        return value

    @_pydantic.field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(_logging.getLevelName(level), int):
            raise ValueError(f"unknown log level {value!r}")
        return level

    def compiled_secret_pattern(self) -> _re.Pattern[str]:
        """The secret pattern compiled case-insensitively."""
        return _re.compile(self.secret_pattern, _re.IGNORECASE)
