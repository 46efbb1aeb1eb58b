"""Tests for the overlay pipeline: load, merge, decode, validate, dump."""

import io as _io
import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic
import pytest as _pytest
import yaml as _yaml

import strata.config as config
import strata.merge as merge
import strata.nodes as nodes

WriteYaml = _typing.Callable[[str, str], _pathlib.Path]


class Database(_pydantic.BaseModel):
    host: str
    port: int = 5432
    password: str = ""


class AppConfig(_pydantic.BaseModel):
    name: str
    database: Database
    secrets: list[str] = _pydantic.Field(default_factory=list)

    def validate_config(self) -> None:
        if not self.name.strip():
            raise ValueError("name must not be blank")


BASE = """\
name: svc
database:
  host: localhost
  password: hunter2
secrets: [a, b]
"""

PROD = """\
database:
  host: db.internal
  port: 6432
"""


class TestOverlay:
    """Tests for loading and merging several sources."""

    def test_streams_overlay(self) -> None:
        """Later sources override earlier ones key by key."""
        loaded = config.from_streams(AppConfig, BASE, PROD)
        result = loaded.get()
        assert result.name == "svc"
        assert result.database.host == "db.internal"
        assert result.database.port == 6432
        assert result.database.password == "hunter2"

    def test_files_overlay(self, write_yaml: WriteYaml) -> None:
        """Files are merged left to right."""
        base = write_yaml("base.yaml", BASE)
        prod = write_yaml("prod.yaml", PROD)
        result = config.from_files(AppConfig, base, str(prod)).get()
        assert result.database.host == "db.internal"

    def test_sequences_concatenate(self) -> None:
        """Overlaid lists extend the base list."""
        result = config.from_streams(AppConfig, BASE, "secrets: [c]\n").get()
        assert result.secrets == ["a", "b", "c"]

    def test_single_source_matches_fold(self) -> None:
        """One source decodes the same as the source merged with nothing."""
        text = "a: &x {b: 1}\nc: *x\nd: [1, 2]\n"
        single = config.from_streams(dict, text).get()
        folded = config.from_streams(dict, text, "{}").get()
        assert single == folded == {"a": {"b": 1}, "c": {"b": 1}, "d": [1, 2]}

    def test_alias_follows_overlaid_anchor(self) -> None:
        """An alias of an overridden anchor reads the new value."""
        base = "defaults: &d\n  retries: 3\nservice: *d\n"
        result = config.from_streams(dict, base, "defaults:\n  retries: 5\n").get()
        assert result["service"]["retries"] == 5

    def test_overlaid_alias_is_independent(self) -> None:
        """An alias detached by an overlay no longer shares data with its anchor."""
        result = config.from_streams(
            dict,
            "x: &r {p: {q: 1}}\ny: *r\n",
            "y: {z: 2}\n",
        ).get()
        assert result["y"] == {"p": {"q": 1}, "z": 2}
        result["y"]["p"]["q"] = 99
        assert result["x"]["p"]["q"] == 1

    def test_source_types(self) -> None:
        """Text, bytes and text or binary streams are accepted."""
        result = config.from_streams(
            dict,
            "a: 1\n",
            b"b: 2\n",
            _io.StringIO("c: 3\n"),
            _io.BytesIO(b"d: 4\n"),
        ).get()
        assert result == {"a": 1, "b": 2, "c": 3, "d": 4}

    def test_preprocess_hook(self) -> None:
        """The preprocess hook rewrites every source before parsing."""
        result = config.from_streams(
            dict,
            "port: ${PORT}\n",
            "host: ${HOST}\n",
            preprocess=lambda text: text.replace("${PORT}", "8080").replace("${HOST}", "h"),
        ).get()
        assert result == {"port": 8080, "host": "h"}

    def test_overlay_function(self) -> None:
        """overlay() folds trees and returns a lone tree unchanged."""
        tree = nodes.load("a: 1\n")
        assert config.overlay([tree]) is tree
        merged = config.overlay([tree, nodes.load("b: 2\n"), nodes.load("a: 3\n")])
        assert nodes.to_python(merged) == {"a": 3, "b": 2}


class TestLoadFailures:
    """Tests for failures while reading, parsing and merging."""

    def test_no_sources(self) -> None:
        """Loading nothing is an error."""
        with _pytest.raises(config.NoSourcesError):
            config.from_streams(dict)
        with _pytest.raises(config.NoSourcesError):
            config.from_files(dict)
        with _pytest.raises(config.NoSourcesError):
            config.overlay([])

    def test_missing_file(self, tmp_path: _pathlib.Path) -> None:
        """A missing file names the path."""
        missing = tmp_path / "missing.yaml"
        with _pytest.raises(config.ConfigFileError) as exc_info:
            config.from_files(dict, missing)
        assert exc_info.value.path == missing
        assert "missing.yaml" in str(exc_info.value)

    def test_invalid_yaml_file(self, write_yaml: WriteYaml) -> None:
        """Malformed YAML names the file, single or overlaid."""
        good = write_yaml("good.yaml", "a: 1\n")
        bad = write_yaml("bad.yaml", "a: [1, 2\n")
        with _pytest.raises(config.ConfigFileError, match="invalid YAML"):
            config.from_files(dict, bad)
        with _pytest.raises(config.ConfigFileError, match="bad.yaml"):
            config.from_files(dict, good, bad)

    def test_invalid_stream(self) -> None:
        """Streams are named by position."""
        with _pytest.raises(config.ConfigSourceError, match="<stream 2>"):
            config.from_streams(dict, "a: 1\n", "a: [\n")

    def test_multiple_documents(self) -> None:
        """A source holding several documents is rejected."""
        with _pytest.raises(config.ConfigSourceError):
            config.from_streams(dict, "a: 1\n", "b: 2\n---\nc: 3\n")

    def test_invalid_utf8(self) -> None:
        """Binary sources must be UTF-8."""
        with _pytest.raises(config.ConfigSourceError, match="UTF-8"):
            config.from_streams(dict, b"a: \xff\n")

    def test_merge_error_propagates(self) -> None:
        """Sources that cannot be merged fail with the merge error."""
        with _pytest.raises(merge.KindMismatchError):
            config.from_streams(dict, "a: {x: 1}\n", "a: [1]\n")

    def test_empty_overlay_source(self) -> None:
        """An empty source cannot take part in an overlay."""
        with _pytest.raises(merge.NilNodeError):
            config.from_streams(dict, "a: 1\n", "")

    @_pytest.mark.parametrize(
        "sources",
        [
            _pytest.param(["a: !custom x\n"], id="single"),
            _pytest.param(["a: !custom x\n", "b: 1\n"], id="overlay"),
        ],
    )
    def test_unknown_tag(self, sources: list[str]) -> None:
        """A tag without constructor fails the same with one source or several."""
        with _pytest.raises(config.ConfigSourceError, match="invalid YAML") as exc_info:
            config.from_streams(dict, *sources)
        assert "!custom" in str(exc_info.value)

    def test_unknown_tag_in_files(self, write_yaml: WriteYaml) -> None:
        """Construction errors after an overlay name the merged files."""
        base = write_yaml("base.yaml", "a: !custom x\n")
        prod = write_yaml("prod.yaml", "b: 1\n")
        with _pytest.raises(config.ConfigSourceError) as exc_info:
            config.from_files(dict, base, prod)
        assert "base.yaml" in str(exc_info.value)
        assert "prod.yaml" in str(exc_info.value)


class TestDecodeAndValidate:
    """Tests for decoding and the validation hooks."""

    def test_decode_error(self) -> None:
        """A value of the wrong type fails with a load error."""
        with _pytest.raises(config.ConfigLoadError) as exc_info:
            config.from_streams(AppConfig, BASE, "database:\n  port: many\n")
        assert len(exc_info.value.errors) == 1
        assert isinstance(exc_info.value.errors[0], _pydantic.ValidationError)

    def test_validatable_type(self) -> None:
        """validate_config() of the target type is run."""
        with _pytest.raises(config.ConfigLoadError, match="name must not be blank"):
            config.from_streams(AppConfig, BASE, "name: ' '\n")

    def test_injected_validator(self) -> None:
        """An injected validator is run after decoding."""

        def require_tls(value: AppConfig) -> None:
            if value.database.port != 6432:
                raise ValueError("database must use the TLS port")

        config.from_streams(AppConfig, BASE, PROD, validator=require_tls)
        with _pytest.raises(config.ConfigLoadError, match="TLS port"):
            config.from_streams(AppConfig, BASE, validator=require_tls)

    def test_all_failures_reported(self) -> None:
        """Both hooks run and both failures are reported."""

        def reject(value: AppConfig) -> None:
            raise ValueError("rejected")

        with _pytest.raises(config.ConfigLoadError) as exc_info:
            config.from_streams(AppConfig, BASE, "name: ''\n", validator=reject)
        errors = exc_info.value.errors
        assert len(errors) == 2
        assert all(isinstance(e, config.ValidationFailedError) for e in errors)
        assert "name must not be blank" in str(exc_info.value)
        assert "rejected" in str(exc_info.value)

    def test_validate_again(self) -> None:
        """validate() re-runs the hooks on the loaded value."""
        loaded = config.from_streams(AppConfig, BASE)
        loaded.validate()
        loaded.get().name = ""
        assert len(loaded.validation_errors()) == 1
        with _pytest.raises(config.ConfigLoadError):
            loaded.validate()


class TestOutput:
    """Tests for writing the configuration back out."""

    def test_dump(self) -> None:
        """dump() writes the decoded value, defaults included."""
        loaded = config.from_streams(AppConfig, BASE)
        data = _yaml.safe_load(loaded.dump())
        assert data == {
            "name": "svc",
            "database": {"host": "localhost", "port": 5432, "password": "hunter2"},
            "secrets": ["a", "b"],
        }

    def test_secrets_hidden(self) -> None:
        """Secret values are masked and secret sections collapsed."""
        loaded = config.from_streams(AppConfig, BASE)
        stream = _io.StringIO()
        loaded.to_secrets_hidden(stream)
        data = _yaml.safe_load(stream.getvalue())
        assert data["database"]["password"] == "*******"
        assert data["secrets"] == "*"
        assert data["name"] == "svc"

    def test_secrets_hidden_structured(self) -> None:
        """Structured hiding keeps secret sections as lists."""
        loaded = config.from_streams(AppConfig, BASE)
        stream = _io.StringIO()
        loaded.to_secrets_hidden_structured(stream)
        data = _yaml.safe_load(stream.getvalue())
        assert data["secrets"] == ["*", "*"]
        assert data["database"]["password"] == "*******"

    def test_custom_pattern(self) -> None:
        """A custom pattern decides which keys are secret."""
        loaded = config.from_streams(AppConfig, BASE)
        data = _yaml.safe_load(loaded.dump_secrets_hidden(pattern="host"))
        assert data["database"]["host"] == "*********"
        assert data["database"]["password"] == "hunter2"

    def test_hiding_does_not_touch_value(self) -> None:
        """Redaction works on a copy, the loaded value stays intact."""
        loaded = config.from_streams(AppConfig, BASE)
        loaded.dump_secrets_hidden()
        loaded.dump_secrets_hidden(structured=True)
        assert loaded.get().database.password == "hunter2"
        assert "hunter2" in loaded.dump()

    def test_to_stream(self) -> None:
        """to() writes the same text as dump()."""
        loaded = config.from_streams(AppConfig, BASE)
        stream = _io.StringIO()
        loaded.to(stream)
        assert stream.getvalue() == loaded.dump()

    def test_to_file_round_trip(self, tmp_path: _pathlib.Path) -> None:
        """A written file loads back to the same value."""
        loaded = config.from_streams(AppConfig, BASE, PROD)
        path = tmp_path / "out.yaml"
        loaded.to_file(path)
        assert config.from_files(AppConfig, path).get() == loaded.get()

    def test_to_file_error(self, tmp_path: _pathlib.Path) -> None:
        """A file that cannot be written names the path."""
        loaded = config.from_streams(AppConfig, BASE)
        with _pytest.raises(config.ConfigFileError, match="cannot write"):
            loaded.to_file(tmp_path / "missing" / "out.yaml")
