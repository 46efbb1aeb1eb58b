"""
Secret redaction for YAML node trees.

Values stored under keys whose name matches the secret pattern are masked
in place:

- scalars become a run of asterisks of the same length, typed as strings
- aliases mask the node they reference, which every other alias of the same
  anchor then shows as well
- containers either collapse into a single "*" scalar, or keep their shape
  with every value inside masked

Only mapping keys carry names, so sequences are walked without filtering.
Inside a masked container every node is masked, mapping keys included.

Example:
    >>> import strata.nodes as nodes
    >>> tree = nodes.load("user: admin\\npassword: hunter2\\n")
    >>> redact(tree, collapse_structure=True)
    >>> nodes.to_python(tree)
    {'user': 'admin', 'password': '*******'}
"""

from __future__ import annotations

import logging as _logging
import re as _re

import strata.constants as constants
import strata.nodes as nodes

_logger = _logging.getLogger(__name__)

PatternLike = str | _re.Pattern[str] | None


SECRET_PATTERN: _re.Pattern[str] = _re.compile(constants.DEFAULT_SECRET_PATTERN, _re.IGNORECASE)
"""Default pattern identifying secret key names."""


def compile_pattern(pattern: PatternLike) -> _re.Pattern[str]:
    """
    Turn a pattern argument into a compiled regular expression.

    Strings are compiled case-insensitively. None selects SECRET_PATTERN.
    """
    if pattern is None:
        return SECRET_PATTERN
    if isinstance(pattern, _re.Pattern):
        return pattern
    return _re.compile(pattern, _re.IGNORECASE)


def is_secret_key(key: nodes.Node | str, pattern: PatternLike = None) -> bool:
    """
    Check whether a mapping key names a secret.

    Non-scalar key nodes never name a secret. The key text is lowercased
    before matching.
    """
    if isinstance(key, nodes.Node):
        if not key.is_scalar:
            return False
        key = key.value
    return compile_pattern(pattern).search(key.lower()) is not None


def redact(
    node: nodes.Node | None,
    collapse_structure: bool,
    *,
    pattern: PatternLike = None,
) -> None:
    """
    Mask secret values in a tree, in place.

    Args:
        node: Tree to redact. None is ignored.
        collapse_structure: Replace secret containers with a single "*"
            (True) or keep their shape and mask every value (False).
        pattern: Secret key pattern; defaults to SECRET_PATTERN.
    """
    if node is None:
        return

    _logger.debug("Redacting secrets (collapse_structure=%s)", collapse_structure)
    _Redactor(compile_pattern(pattern), collapse_structure).walk(node)


class _Redactor:
    """
    One redaction pass.

    Each node is walked at most once and each container masked at most
    once, which keeps shared and cyclic alias targets finite.
    """

    def __init__(self, pattern: _re.Pattern[str], collapse_structure: bool) -> None:
        self._pattern = pattern
        self._collapse = collapse_structure
        self._walked: set[int] = set()
        self._masked: set[int] = set()

    def walk(self, node: nodes.Node) -> None:
        if id(node) in self._walked:
            return
        self._walked.add(id(node))

        if node.kind is nodes.NodeKind.MAPPING:
            for key, value in node.pairs():
                if is_secret_key(key, self._pattern):
                    self.mask(value)
                else:
                    self.walk(value)
        else:
            for child in node.content:
                self.walk(child)

    def mask(self, node: nodes.Node) -> None:
        match node.kind:
            case nodes.NodeKind.SCALAR:
                node.tag = nodes.STR_TAG
                node.value = constants.MASK_CHAR * len(node.value)
            case nodes.NodeKind.ALIAS:
                if node.target is not None:
                    self.mask(node.target)
            case nodes.NodeKind.DOCUMENT:
                for child in node.content:
                    self.mask(child)
            case nodes.NodeKind.MAPPING | nodes.NodeKind.SEQUENCE:
                if id(node) in self._masked:
                    return
                self._masked.add(id(node))
                if self._collapse:
                    _collapse(node)
                else:
                    # Mapping keys are masked along with their values
                    for child in node.content:
                        self.mask(child)


def _collapse(node: nodes.Node) -> None:
    """Turn a container into the collapsed mask scalar, keeping its anchor."""
    node.kind = nodes.NodeKind.SCALAR
    node.tag = nodes.STR_TAG
    node.value = constants.COLLAPSED_MASK
    node.content = []
    node.style = None
    node.flow_style = None
