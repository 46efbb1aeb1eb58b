"""
Strata - layered YAML configuration.

Loads configuration from one or more YAML documents, overlays later
documents on top of earlier ones, decodes the result into a typed value
and can re-serialize it with secret values masked.

Example:
    >>> import strata
    >>> cfg = strata.from_files(AppConfig, "base.yaml", "prod.yaml")
    >>> cfg.get().name
    'production'
"""

import importlib.metadata as _metadata

# Version is defined in pyproject.toml
_raw_version = _metadata.version("strata")
__version_info__: tuple[int, int, int] = tuple(int(x) for x in _raw_version.split(".")[:3])  # type: ignore[assignment]
__version__: str = ".".join(str(x) for x in __version_info__)
__author__ = "Strata Contributors"

from strata.config import (  # noqa: E402
    Config,
    ConfigError,
    ConfigFileError,
    ConfigLoadError,
    NoSourcesError,
    Settings,
    from_files,
    from_streams,
)
from strata.merge import MergeError  # noqa: E402
from strata.secrets import redact  # noqa: E402

__all__ = [
    "__version__",
    "__version_info__",
    "Config",
    "ConfigError",
    "ConfigFileError",
    "ConfigLoadError",
    "MergeError",
    "NoSourcesError",
    "Settings",
    "from_files",
    "from_streams",
    "redact",
]
