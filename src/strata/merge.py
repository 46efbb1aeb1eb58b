"""
Overlay merge of YAML node trees.

`merge(a, b)` returns a new tree representing `b` laid over `a`:

- documents merge their single roots
- sequences concatenate (`a` items first, no deduplication)
- mappings merge per key: a scalar key already present in `a` has its value
  merged recursively in place, other keys are appended in `b`'s order
- scalars are replaced by `b` (last writer wins)
- an alias in `a` is merged as a copy of its target
- aliases in `b` are followed to their target before anything else

Merged nodes are new objects with fresh content lists; untouched children
are shared with the inputs. The inputs themselves are never modified.

Anchors: when both sides carry a name they must agree. An unnamed `a`
takes `b`'s name, unless `b` was reached through an alias, because the
anchor of an aliased node is defined elsewhere in `b`.
"""

from __future__ import annotations

import dataclasses as _dataclasses

import strata.constants as constants
import strata.nodes as nodes

# =============================================================================
# Errors
# =============================================================================


class MergeError(Exception):
    """Base class for all merge failures."""


class NilNodeError(MergeError):
    """A merge input is missing (None, or an alias without target)."""

    def __init__(self, message: str = "node is nil") -> None:
        super().__init__(message)


class KindMismatchError(MergeError):
    """The two nodes have incompatible kinds and neither is an alias."""

    def __init__(self, a: nodes.Node, b: nodes.Node) -> None:
        self.a = a
        self.b = b
        super().__init__(f"node kind mismatch: {a.describe()} vs {b.describe()}")


class TypeUnhandledError(MergeError):
    """The node kind is not supported by the merge."""

    def __init__(self, node: nodes.Node) -> None:
        self.node = node
        super().__init__(f"unhandled node type {node.kind!r}")


class AliasExpectedError(MergeError):
    """The alias merge step was given a node that is not an alias."""

    def __init__(self, node: nodes.Node) -> None:
        self.node = node
        super().__init__(f"alias node expected, got {node.describe()}")


class UnexpectedDocumentShapeError(MergeError):
    """A document node does not hold exactly one root."""

    def __init__(self, a: nodes.Node, b: nodes.Node) -> None:
        super().__init__(
            "unexpected document node configuration "
            f"({len(a.content)} and {len(b.content)} roots, expected 1 each)"
        )


class UnequalAnchorsError(MergeError):
    """Both nodes carry an anchor, with different names."""

    def __init__(self, source: str, overlay: str) -> None:
        self.source = source
        self.overlay = overlay
        super().__init__(
            f"unequal named anchors not supported (source &{source}, overlay &{overlay})"
        )


class MaxDepthExceededError(MergeError):
    """Merge recursion went deeper than allowed, usually a cyclic alias graph."""

    def __init__(self, max_depth: int) -> None:
        self.max_depth = max_depth
        super().__init__(f"merge exceeded maximum depth of {max_depth} (cyclic aliases?)")


# =============================================================================
# Merge
# =============================================================================


def merge(
    a: nodes.Node | None,
    b: nodes.Node | None,
    *,
    max_depth: int = constants.DEFAULT_MAX_DEPTH,
) -> nodes.Node:
    """
    Merge node `b` over node `a`.

    Args:
        a: Base tree.
        b: Overlay tree.
        max_depth: Recursion limit; exceeding it fails the merge.

    Returns:
        A new node holding the merged tree.

    Raises:
        MergeError: On any failure. No partial result is returned.
        AliasCycleError: If an alias chain in `b` loops back on itself.
    """
    try:
        return _merge(a, b, 0, max_depth)
    except RecursionError:
        # max_depth above what the interpreter stack allows
        raise MaxDepthExceededError(max_depth) from None


def _merge(
    a: nodes.Node | None,
    b: nodes.Node | None,
    depth: int,
    max_depth: int,
) -> nodes.Node:
    if a is None or b is None:
        raise NilNodeError()
    if depth > max_depth:
        raise MaxDepthExceededError(max_depth)

    if a.kind is not b.kind and not a.is_alias and not b.is_alias:
        raise KindMismatchError(a, b)

    via_alias = b.is_alias
    resolved = nodes.resolve(b)
    if resolved is None:
        raise NilNodeError(f"alias without target at {b.describe()}")

    if a.anchor and resolved.anchor and a.anchor != resolved.anchor:
        raise UnequalAnchorsError(a.anchor, resolved.anchor)

    match a.kind:
        case nodes.NodeKind.DOCUMENT:
            result = _merge_documents(a, resolved, depth, max_depth)
        case nodes.NodeKind.SEQUENCE:
            result = _merge_sequences(a, resolved)
        case nodes.NodeKind.MAPPING:
            result = _merge_mappings(a, resolved, depth, max_depth)
        case nodes.NodeKind.SCALAR:
            result = _merge_scalars(a, resolved)
        case nodes.NodeKind.ALIAS:
            # Pass the unresolved overlay so the alias origin is kept
            result = _merge_alias(a, b, depth, max_depth)
        case _:
            raise TypeUnhandledError(a)

    result.anchor = a.anchor or ("" if via_alias else resolved.anchor)
    return result


def _merge_alias(
    a: nodes.Node | None,
    b: nodes.Node | None,
    depth: int = 0,
    max_depth: int = constants.DEFAULT_MAX_DEPTH,
) -> nodes.Node:
    if a is None or b is None:
        raise NilNodeError()
    if not a.is_alias:
        raise AliasExpectedError(a)
    if a.target is None:
        raise NilNodeError(f"alias without target at {a.describe()}")

    # The copy must not claim the anchor, the original still defines it
    detached = _dataclasses.replace(a.target, anchor="")
    return _merge(detached, b, depth + 1, max_depth)


def _merge_documents(
    a: nodes.Node | None,
    b: nodes.Node | None,
    depth: int = 0,
    max_depth: int = constants.DEFAULT_MAX_DEPTH,
) -> nodes.Node:
    if a is None or b is None:
        raise NilNodeError()
    if a.kind is not nodes.NodeKind.DOCUMENT or b.kind is not nodes.NodeKind.DOCUMENT:
        raise KindMismatchError(a, b)

    # Multi-document sources are not supported, one root per side
    if len(a.content) != 1 or len(b.content) != 1:
        raise UnexpectedDocumentShapeError(a, b)

    merged = _merge(a.content[0], b.content[0], depth + 1, max_depth)
    return _dataclasses.replace(a, content=[merged])


def _merge_scalars(a: nodes.Node | None, b: nodes.Node | None) -> nodes.Node:
    if a is None or b is None:
        raise NilNodeError()
    if a.kind is not nodes.NodeKind.SCALAR or b.kind is not nodes.NodeKind.SCALAR:
        raise KindMismatchError(a, b)

    return _dataclasses.replace(b)


def _merge_sequences(a: nodes.Node | None, b: nodes.Node | None) -> nodes.Node:
    if a is None or b is None:
        raise NilNodeError()
    if a.kind is not nodes.NodeKind.SEQUENCE or b.kind is not nodes.NodeKind.SEQUENCE:
        raise KindMismatchError(a, b)

    return _dataclasses.replace(a, content=[*a.content, *b.content])


def _merge_mappings(
    a: nodes.Node | None,
    b: nodes.Node | None,
    depth: int = 0,
    max_depth: int = constants.DEFAULT_MAX_DEPTH,
) -> nodes.Node:
    if a is None or b is None:
        raise NilNodeError()
    if a.kind is not nodes.NodeKind.MAPPING or b.kind is not nodes.NodeKind.MAPPING:
        raise KindMismatchError(a, b)

    content = list(a.content)
    for key, value in b.pairs():
        _add_pair(content, key, value, depth, max_depth)

    return _dataclasses.replace(a, content=content)


def _add_pair(
    content: list[nodes.Node],
    key: nodes.Node,
    value: nodes.Node,
    depth: int,
    max_depth: int,
) -> None:
    """Merge one overlay pair into mapping content, in place."""
    for i in range(0, len(content) - 1, 2):
        existing = content[i]
        if existing.is_scalar and key.is_scalar and existing.value == key.value:
            content[i + 1] = _merge(content[i + 1], value, depth + 1, max_depth)
            return

    content.append(key)
    content.append(value)
