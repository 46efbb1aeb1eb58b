"""
Overlay pipeline: load, merge, decode and validate configuration sources.

Flow for several sources:
1. Read each source's text (and run the optional preprocess hook)
2. Parse each text into a node tree
3. Fold the trees left to right through `strata.merge.merge`
4. Construct Python data from the merged tree
5. Decode into the target type with pydantic
6. Run the validation hooks

A single source skips steps 2-4 and is decoded straight from
`yaml.safe_load`; the result is the same as running it through the fold.

Output goes the other way: the typed value is encoded to a fresh tree,
optionally redacted, and emitted as YAML.
"""

from __future__ import annotations

import collections.abc as _abc
import logging as _logging
import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic
import yaml as _yaml

import strata.constants as constants
import strata.merge as merge
import strata.nodes as nodes
import strata.secrets as secrets

_logger = _logging.getLogger(__name__)

T = _typing.TypeVar("T")

Preprocessor = _typing.Callable[[str], str]
"""Hook applied to each source's text before parsing (e.g. templating)."""

Validator = _typing.Callable[[_typing.Any], None]
"""Injected validation hook; raises to reject the decoded value."""

Source = str | bytes | _typing.IO[str] | _typing.IO[bytes]

# =============================================================================
# Errors
# =============================================================================


class ConfigError(Exception):
    """Base class for configuration loading errors."""


class NoSourcesError(ConfigError):
    """No configuration source was given."""

    def __init__(self) -> None:
        super().__init__("no configuration sources given")


class ConfigSourceError(ConfigError):
    """Error reading or parsing one configuration source."""

    label = "config source"

    def __init__(self, source: str, message: str) -> None:
        self.source = source
        super().__init__(f"Error in {self.label} {source}: {message}")


class ConfigFileError(ConfigSourceError):
    """Error loading, parsing or writing a configuration file."""

    label = "config file"

    def __init__(self, path: _pathlib.Path, message: str) -> None:
        self.path = path
        super().__init__(str(path), message)


class ValidationFailedError(ConfigError):
    """A validation hook rejected the decoded configuration."""

    def __init__(self, cause: Exception) -> None:
        self.cause = cause
        super().__init__(f"validation failed: {cause}")


class ConfigLoadError(ConfigError):
    """
    Decoding or validation failed.

    Carries every failure found, so a decode error and validation errors
    are reported together.
    """

    def __init__(self, errors: _abc.Sequence[Exception]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(str(e) for e in self.errors))


# =============================================================================
# Validation capability
# =============================================================================


@_typing.runtime_checkable
class Validatable(_typing.Protocol):
    """
    Capability of configuration types that check themselves.

    Implement `validate_config` on the target type and raise to reject the
    loaded value. It is called after a successful decode.
    """

    def validate_config(self) -> None: ...


# =============================================================================
# Config
# =============================================================================


class Config(_typing.Generic[T]):
    """
    A loaded, decoded configuration of type T.

    Use `from_streams()` or `from_files()` to create one.
    """

    def __init__(
        self,
        content: T,
        target: type[T],
        *,
        validator: Validator | None = None,
    ) -> None:
        self._content = content
        self._target = target
        self._validator = validator
        self._adapter: _pydantic.TypeAdapter[T] = _pydantic.TypeAdapter(target)

    def get(self) -> T:
        """The decoded configuration value."""
        return self._content

    def validation_errors(self) -> list[Exception]:
        """Run the validation hooks and return their failures."""
        errors: list[Exception] = []

        if isinstance(self._content, Validatable):
            try:
                self._content.validate_config()
            except Exception as e:
                errors.append(ValidationFailedError(e))

        if self._validator is not None:
            try:
                self._validator(self._content)
            except Exception as e:
                errors.append(ValidationFailedError(e))

        return errors

    def validate(self) -> None:
        """
        Run the validation hooks.

        Raises:
            ConfigLoadError: If any hook rejected the value.
        """
        errors = self.validation_errors()
        if errors:
            raise ConfigLoadError(errors)

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    def to_tree(self) -> nodes.Node:
        """Encode the value into a fresh node tree."""
        data = self._adapter.dump_python(self._content, mode="json")
        return nodes.from_python(data)

    def dump(self) -> str:
        """The configuration as YAML text."""
        return nodes.emit(self.to_tree()) or ""

    def dump_secrets_hidden(
        self,
        *,
        structured: bool = False,
        pattern: secrets.PatternLike = None,
    ) -> str:
        """
        The configuration as YAML text with secret values masked.

        Args:
            structured: Keep the shape of secret containers (True) or
                collapse each into a single "*" (False).
            pattern: Secret key pattern; defaults to the built-in one.
        """
        # Redaction is destructive, always work on a freshly encoded tree
        tree = self.to_tree()
        secrets.redact(tree, collapse_structure=not structured, pattern=pattern)
        return nodes.emit(tree) or ""

    def to(self, stream: _typing.TextIO) -> None:
        """Write the configuration as YAML to a text stream."""
        stream.write(self.dump())

    def to_secrets_hidden(
        self,
        stream: _typing.TextIO,
        pattern: secrets.PatternLike = None,
    ) -> None:
        """
        Write the configuration with secrets hidden, collapsing structure.

            id: id0
            secrets:
              - secret0
              - secret1

        is written as

            id: id0
            secrets: '*'
        """
        stream.write(self.dump_secrets_hidden(structured=False, pattern=pattern))

    def to_secrets_hidden_structured(
        self,
        stream: _typing.TextIO,
        pattern: secrets.PatternLike = None,
    ) -> None:
        """
        Write the configuration with secrets hidden, keeping structure.

            id: id0
            secrets:
              - secret0
              - secret1

        is written as

            id: id0
            secrets:
              - '*******'
              - '*******'
        """
        stream.write(self.dump_secrets_hidden(structured=True, pattern=pattern))

    def to_file(self, path: _pathlib.Path | str) -> None:
        """Write the configuration to a file, replacing it if present."""
        path = _pathlib.Path(path)
        try:
            path.write_text(self.dump(), encoding="utf-8")
        except OSError as e:
            raise ConfigFileError(path, f"cannot write file: {e}") from e


# =============================================================================
# Overlay
# =============================================================================


def overlay(
    trees: _abc.Sequence[nodes.Node | None],
    *,
    max_depth: int = constants.DEFAULT_MAX_DEPTH,
) -> nodes.Node | None:
    """
    Fold parsed trees left to right through the merge.

    Returns:
        The first tree merged with every following one.

    Raises:
        NoSourcesError: If `trees` is empty.
        MergeError: If any merge step fails; no partial result is kept.
    """
    if not trees:
        raise NoSourcesError()

    result = trees[0]
    for index, tree in enumerate(trees[1:], start=1):
        _logger.debug("Overlaying source %d of %d", index + 1, len(trees))
        result = merge.merge(result, tree, max_depth=max_depth)
    return result


# =============================================================================
# Loading
# =============================================================================


def from_streams(
    target: type[T],
    *sources: Source,
    preprocess: Preprocessor | None = None,
    validator: Validator | None = None,
    max_depth: int = constants.DEFAULT_MAX_DEPTH,
) -> Config[T]:
    """
    Load configuration from YAML text or streams.

    The first source is the base, every following source is overlaid on
    top of it.

    Args:
        target: Type to decode into (anything pydantic can validate).
        *sources: YAML text (str/bytes) or readable streams.
        preprocess: Hook applied to each source's text before parsing.
        validator: Extra validation hook called with the decoded value.
        max_depth: Merge recursion limit.

    Raises:
        NoSourcesError: If no source is given.
        ConfigSourceError: If a source cannot be read or parsed.
        MergeError: If the sources cannot be merged.
        ConfigLoadError: If decoding or validation fails.
    """
    if not sources:
        raise NoSourcesError()

    texts = [
        (f"<stream {index}>", _read_stream(source, f"<stream {index}>"))
        for index, source in enumerate(sources, start=1)
    ]
    return _load(
        target,
        texts,
        preprocess=preprocess,
        validator=validator,
        max_depth=max_depth,
        error_cls=ConfigSourceError,
    )


def from_files(
    target: type[T],
    *paths: _pathlib.Path | str,
    preprocess: Preprocessor | None = None,
    validator: Validator | None = None,
    max_depth: int = constants.DEFAULT_MAX_DEPTH,
) -> Config[T]:
    """
    Load configuration from YAML files.

    The first file is the base, every following file is overlaid on top
    of it. See `from_streams()` for the arguments.

    Raises:
        NoSourcesError: If no path is given.
        ConfigFileError: If a file cannot be read or parsed.
        MergeError: If the files cannot be merged.
        ConfigLoadError: If decoding or validation fails.
    """
    if not paths:
        raise NoSourcesError()

    texts = [(str(path), _read_file(_pathlib.Path(path))) for path in paths]
    return _load(
        target,
        texts,
        preprocess=preprocess,
        validator=validator,
        max_depth=max_depth,
        error_cls=_file_error,
    )


def _file_error(source: str, message: str) -> ConfigFileError:
    return ConfigFileError(_pathlib.Path(source), message)


def _load(
    target: type[T],
    texts: list[tuple[str, str]],
    *,
    preprocess: Preprocessor | None,
    validator: Validator | None,
    max_depth: int,
    error_cls: _typing.Callable[[str, str], ConfigSourceError],
) -> Config[T]:
    if preprocess is not None:
        texts = [(name, preprocess(text)) for name, text in texts]

    if len(texts) == 1:
        # Most common case: no need to go through the node tree
        name, text = texts[0]
        _logger.debug("Loading single configuration source %s", name)
        try:
            data = _yaml.safe_load(text)
        except _yaml.YAMLError as e:
            raise error_cls(name, f"invalid YAML: {e}") from e
    else:
        _logger.debug("Loading %d configuration sources", len(texts))
        trees: list[nodes.Node | None] = []
        for name, text in texts:
            try:
                trees.append(nodes.load(text))
            except _yaml.YAMLError as e:
                raise error_cls(name, f"invalid YAML: {e}") from e
        merged = overlay(trees, max_depth=max_depth)
        try:
            data = nodes.to_python(merged)
        except _yaml.YAMLError as e:
            # Construction errors can come from any of the merged sources
            names = " + ".join(name for name, _text in texts)
            raise ConfigSourceError(names, f"invalid YAML: {e}") from e

    return _decode(target, data, validator)


def _decode(
    target: type[T],
    data: _typing.Any,
    validator: Validator | None,
) -> Config[T]:
    adapter: _pydantic.TypeAdapter[T] = _pydantic.TypeAdapter(target)
    try:
        content = adapter.validate_python(data)
    except _pydantic.ValidationError as e:
        raise ConfigLoadError([e]) from e

    config = Config(content, target, validator=validator)
    errors = config.validation_errors()
    if errors:
        raise ConfigLoadError(errors)
    return config


def _read_stream(source: Source, name: str) -> str:
    if isinstance(source, str):
        return source
    if isinstance(source, bytes):
        raw: str | bytes = source
    else:
        try:
            raw = source.read()
        except OSError as e:
            raise ConfigSourceError(name, f"cannot read: {e}") from e
    if isinstance(raw, bytes):
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ConfigSourceError(name, f"not valid UTF-8: {e}") from e
    return raw


def _read_file(path: _pathlib.Path) -> str:
    _logger.debug("Reading configuration file %s", path)
    try:
        return path.read_text(encoding="utf-8")
    except PermissionError as e:
        raise ConfigFileError(path, f"permission denied: {e}") from e
    except OSError as e:
        raise ConfigFileError(path, f"cannot read file: {e}") from e
    except UnicodeDecodeError as e:
        raise ConfigFileError(path, f"not valid UTF-8: {e}") from e
