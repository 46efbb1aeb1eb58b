"""
Shared pytest fixtures for Strata tests.

This file is automatically loaded by pytest. Fixtures defined here are
available to all test files without explicit imports.
"""

import os as _os
import pathlib as _pathlib
import typing as _typing
import unittest.mock as _mock

import pytest as _pytest

import strata.nodes as nodes

# Environment keys that should be cleared for isolated tests
ENV_KEYS_TO_CLEAR = [
    "STRATA_SECRET_PATTERN",
    "STRATA_MAX_DEPTH",
    "STRATA_LOG_LEVEL",
    "NO_COLOR",
]


@_pytest.fixture
def clean_env() -> dict[str, str]:
    """
    Return environment dict with Strata-related keys removed.

    Use with mock.patch.dict to isolate tests from the actual environment.
    """
    return {k: v for k, v in _os.environ.items() if k not in ENV_KEYS_TO_CLEAR}


@_pytest.fixture
def isolated_env(clean_env: dict[str, str]) -> _typing.Any:
    """
    Context manager that isolates tests from environment variables.

    Usage:
        def test_something(isolated_env):
            with isolated_env:
                settings = config.Settings()
    """
    return _mock.patch.dict(_os.environ, clean_env, clear=True)


@_pytest.fixture
def write_yaml(tmp_path: _pathlib.Path) -> _typing.Callable[[str, str], _pathlib.Path]:
    """
    Factory writing YAML text to a file in a temporary directory.

    Usage:
        def test_load(write_yaml):
            base = write_yaml("base.yaml", "name: base\\n")
    """

    def _write(name: str, content: str) -> _pathlib.Path:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@_pytest.fixture
def tree() -> _typing.Callable[[str], nodes.Node]:
    """Factory composing YAML text into a document tree (never None)."""

    def _tree(text: str) -> nodes.Node:
        result = nodes.load(text)
        assert result is not None, "test YAML must hold a document"
        return result

    return _tree
