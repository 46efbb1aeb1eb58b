"""
Alias dereferencing.

Two ways of answering "what does this alias point at":

- `resolve()` follows the direct `target` references. This is what the
  merge engine uses.
- `AnchorTable` resolves by anchor name in document order, the way a YAML
  reader resolves the serialized text. After an overlay replaced an
  anchored node, the table hands out the replacement, so aliases keep
  tracking the anchor rather than the node they were parsed against.
"""

from __future__ import annotations

import strata.nodes._types as types


class AliasCycleError(ValueError):
    """Raised when an alias chain leads back to an alias already visited."""

    def __init__(self, node: types.Node) -> None:
        self.node = node
        super().__init__(f"alias cycle detected at {node.describe()}")


def resolve(node: types.Node | None) -> types.Node | None:
    """
    Follow an alias chain to the first non-alias node.

    Non-alias nodes are returned unchanged.

    Returns:
        The resolved node, or None if `node` is None or the chain ends
        in an alias without target.

    Raises:
        AliasCycleError: If the chain revisits an alias.
    """
    visited: set[int] = set()
    while node is not None and node.kind is types.NodeKind.ALIAS:
        if id(node) in visited:
            raise AliasCycleError(node)
        visited.add(id(node))
        node = node.target
    return node


class AnchorTable:
    """
    Registry of anchored nodes keyed by anchor name.

    Walkers register anchored nodes as they meet them in document order;
    a later definition of the same name replaces the earlier one.
    """

    __slots__ = ("_anchors",)

    def __init__(self) -> None:
        self._anchors: dict[str, types.Node] = {}

    def register(self, node: types.Node) -> None:
        """Register `node` under its anchor name, if it has one."""
        if node.anchor:
            self._anchors[node.anchor] = node

    def lookup(self, alias: types.Node) -> types.Node | None:
        """
        Find the node an alias currently refers to.

        The anchor defined under the target's name wins; when the name has
        not been seen yet the direct target is used.
        """
        target = alias.target
        if target is None:
            return None
        if target.anchor and target.anchor in self._anchors:
            return self._anchors[target.anchor]
        return target

    def __contains__(self, name: object) -> bool:
        return name in self._anchors

    def __len__(self) -> int:
        return len(self._anchors)
