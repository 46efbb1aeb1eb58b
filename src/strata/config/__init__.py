"""
Configuration loading for Strata.

Loads YAML sources, overlays them, decodes the result with pydantic and
writes it back out, optionally with secrets hidden.
"""

from strata.config.pipeline import (
    Config,
    ConfigError,
    ConfigFileError,
    ConfigLoadError,
    ConfigSourceError,
    NoSourcesError,
    Validatable,
    ValidationFailedError,
    from_files,
    from_streams,
    overlay,
)
from strata.config.settings import Settings

__all__ = [
    "Config",
    "ConfigError",
    "ConfigFileError",
    "ConfigLoadError",
    "ConfigSourceError",
    "NoSourcesError",
    "Settings",
    "Validatable",
    "ValidationFailedError",
    "from_files",
    "from_streams",
    "overlay",
]
