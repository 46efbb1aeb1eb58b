"""
Node model for YAML document trees.

A single mutable `Node` class covers all five kinds. The kind is a field
rather than a subclass so that redaction can turn a container into a
scalar in place, which every alias referencing that node then observes.

Content layout per kind:
- DOCUMENT: exactly one child, the root
- SEQUENCE: the items
- MAPPING: alternating key, value nodes (even length)
- SCALAR: no content, text in `value`
- ALIAS: no content, `target` references the anchored node
"""

from __future__ import annotations

import dataclasses as _dataclasses
import enum as _enum
import typing as _typing

# Resolved YAML 1.1 core tags (as produced by PyYAML's resolver)
STR_TAG = "tag:yaml.org,2002:str"
INT_TAG = "tag:yaml.org,2002:int"
FLOAT_TAG = "tag:yaml.org,2002:float"
BOOL_TAG = "tag:yaml.org,2002:bool"
NULL_TAG = "tag:yaml.org,2002:null"
SEQ_TAG = "tag:yaml.org,2002:seq"
MAP_TAG = "tag:yaml.org,2002:map"


class NodeKind(_enum.Enum):
    """The kind of a document tree node."""

    DOCUMENT = "document"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    SCALAR = "scalar"
    ALIAS = "alias"

    def __str__(self) -> str:
        return self.value


@_dataclasses.dataclass(eq=False)
class Node:
    """
    A node of a YAML document tree.

    Nodes compare by identity. Aliases are non-owning references: many
    alias nodes may share one `target`, and a change to the target is
    visible through all of them.
    """

    kind: NodeKind
    tag: str = ""
    value: str = ""
    content: list[Node] = _dataclasses.field(default_factory=list)
    anchor: str = ""
    target: Node | None = None
    style: str | None = None
    """Scalar quoting style as reported by the parser (None = plain)."""
    flow_style: bool | None = None
    """Whether a container was written in flow style."""
    line: int = 0
    """1-indexed source line, 0 when the node was synthesized."""
    column: int = 0
    """1-indexed source column, 0 when the node was synthesized."""

    @property
    def is_alias(self) -> bool:
        return self.kind is NodeKind.ALIAS

    @property
    def is_scalar(self) -> bool:
        return self.kind is NodeKind.SCALAR

    @property
    def is_container(self) -> bool:
        return self.kind in (NodeKind.SEQUENCE, NodeKind.MAPPING)

    @property
    def root(self) -> Node:
        """The single child of a document node."""
        if self.kind is not NodeKind.DOCUMENT or len(self.content) != 1:
            raise ValueError(f"{self.kind} node has no single root")
        return self.content[0]

    def pairs(self) -> _typing.Iterator[tuple[Node, Node]]:
        """Iterate over (key, value) pairs of a mapping node."""
        if self.kind is not NodeKind.MAPPING:
            raise ValueError(f"{self.kind} node has no key/value pairs")
        for i in range(0, len(self.content) - 1, 2):
            yield self.content[i], self.content[i + 1]

    def describe(self) -> str:
        """Short human-readable description used in error messages."""
        text = str(self.kind)
        if self.anchor:
            text += f" &{self.anchor}"
        if self.line:
            text += f" (line {self.line})"
        return text

    def __repr__(self) -> str:
        if self.kind is NodeKind.SCALAR:
            body = repr(self.value)
        elif self.kind is NodeKind.ALIAS:
            body = f"*{self.target.anchor if self.target is not None else '?'}"
        else:
            body = f"{len(self.content)} children"
        anchor = f" &{self.anchor}" if self.anchor else ""
        return f"Node({self.kind}{anchor}: {body})"


# =============================================================================
# Factories
# =============================================================================


def document(root: Node) -> Node:
    """Create a document node wrapping `root`."""
    return Node(NodeKind.DOCUMENT, content=[root])


def scalar(value: str, tag: str = STR_TAG, *, anchor: str = "") -> Node:
    """Create a scalar node."""
    return Node(NodeKind.SCALAR, tag=tag, value=value, anchor=anchor)


def sequence(items: _typing.Iterable[Node], *, anchor: str = "") -> Node:
    """Create a sequence node from item nodes."""
    return Node(NodeKind.SEQUENCE, tag=SEQ_TAG, content=list(items), anchor=anchor)


def mapping(
    pairs: _typing.Iterable[tuple[Node, Node]],
    *,
    anchor: str = "",
) -> Node:
    """Create a mapping node from (key, value) node pairs."""
    content: list[Node] = []
    for key, value in pairs:
        content.append(key)
        content.append(value)
    return Node(NodeKind.MAPPING, tag=MAP_TAG, content=content, anchor=anchor)


def alias(target: Node) -> Node:
    """Create an alias node referencing `target`."""
    return Node(NodeKind.ALIAS, target=target)


# =============================================================================
# Shape checks
# =============================================================================


def well_formed(node: Node | None) -> bool:
    """
    Check the shape invariants of a tree.

    Mappings have an even number of children, documents exactly one,
    aliases no children but a target, scalars no children. Alias targets
    are not descended into.
    """
    if node is None:
        return False

    seen: set[int] = set()
    stack = [node]
    while stack:
        current = stack.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))

        match current.kind:
            case NodeKind.DOCUMENT:
                if len(current.content) != 1:
                    return False
            case NodeKind.MAPPING:
                if len(current.content) % 2:
                    return False
            case NodeKind.SEQUENCE:
                pass
            case NodeKind.SCALAR:
                if current.content:
                    return False
            case NodeKind.ALIAS:
                if current.content or current.target is None:
                    return False
            case _:
                return False

        stack.extend(current.content)

    return True
