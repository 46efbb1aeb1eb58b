"""
YAML adapter for the node model.

Provides:
- load: compose YAML text into a node tree, keeping anchors, aliases,
  resolved tags, styles and source positions
- emit: write a node tree back to YAML text
- to_python: construct plain Python data from a node tree
- from_python: represent plain Python data as a node tree

PyYAML's own composer resolves aliases into shared nodes and forgets the
anchor names, which is why composing and emitting work on the event level
here. Parsing, tag resolution, construction and text emission are left to
PyYAML's SafeLoader and SafeDumper.
"""

from __future__ import annotations

import io as _io
import typing as _typing

import yaml as _yaml

import strata.nodes._aliases as aliases
import strata.nodes._types as types

# =============================================================================
# Loading
# =============================================================================


class _TreeLoader(_yaml.SafeLoader):
    """
    YAML loader that composes into `strata.nodes.Node` trees.

    Uses the SafeLoader parser and resolver unchanged and replaces only the
    composition step, so aliases stay alias nodes that reference their
    anchored node. Anchors are registered before their children are
    composed, so recursive structures are accepted the same way PyYAML
    accepts them.
    """

    def __init__(self, stream: _typing.Any) -> None:
        super().__init__(stream)
        self._tree_anchors: dict[str, types.Node] = {}

    def load_tree(self) -> types.Node | None:
        """Compose the single document of the stream, or None if empty."""
        # Drop the STREAM-START event.
        self.get_event()

        tree: types.Node | None = None
        if not self.check_event(_yaml.StreamEndEvent):
            tree = self._compose_document()

        if not self.check_event(_yaml.StreamEndEvent):
            event = self.get_event()
            raise _yaml.composer.ComposerError(
                "expected a single document in the stream",
                None,
                "but found another document",
                event.start_mark,
            )

        # Drop the STREAM-END event.
        self.get_event()
        return tree

    def _compose_document(self) -> types.Node:
        start_event = self.get_event()
        root = self._compose_tree_node()
        self.get_event()
        self._tree_anchors = {}

        tree = types.document(root)
        _set_position(tree, start_event)
        return tree

    def _compose_tree_node(self) -> types.Node:
        if self.check_event(_yaml.AliasEvent):
            event = self.get_event()
            if event.anchor not in self._tree_anchors:
                raise _yaml.composer.ComposerError(
                    None,
                    None,
                    f"found undefined alias {event.anchor!r}",
                    event.start_mark,
                )
            node = types.alias(self._tree_anchors[event.anchor])
            _set_position(node, event)
            return node

        event = self.peek_event()
        anchor = event.anchor
        if anchor is not None and anchor in self._tree_anchors:
            first = self._tree_anchors[anchor]
            raise _yaml.composer.ComposerError(
                f"found duplicate anchor {anchor!r}; first occurrence at line {first.line}",
                None,
                "second occurrence",
                event.start_mark,
            )

        if self.check_event(_yaml.ScalarEvent):
            return self._compose_scalar(anchor)
        if self.check_event(_yaml.SequenceStartEvent):
            return self._compose_sequence(anchor)
        return self._compose_mapping(anchor)

    def _compose_scalar(self, anchor: str | None) -> types.Node:
        event = self.get_event()
        tag = event.tag
        if tag is None or tag == "!":
            tag = self.resolve(_yaml.ScalarNode, event.value, event.implicit)
        node = types.Node(
            types.NodeKind.SCALAR,
            tag=tag,
            value=event.value,
            anchor=anchor or "",
            style=event.style,
        )
        _set_position(node, event)
        if anchor is not None:
            self._tree_anchors[anchor] = node
        return node

    def _compose_sequence(self, anchor: str | None) -> types.Node:
        start_event = self.get_event()
        tag = start_event.tag
        if tag is None or tag == "!":
            tag = self.resolve(_yaml.SequenceNode, None, start_event.implicit)
        node = types.Node(
            types.NodeKind.SEQUENCE,
            tag=tag,
            anchor=anchor or "",
            flow_style=start_event.flow_style,
        )
        _set_position(node, start_event)
        if anchor is not None:
            self._tree_anchors[anchor] = node
        while not self.check_event(_yaml.SequenceEndEvent):
            node.content.append(self._compose_tree_node())
        self.get_event()
        return node

    def _compose_mapping(self, anchor: str | None) -> types.Node:
        start_event = self.get_event()
        tag = start_event.tag
        if tag is None or tag == "!":
            tag = self.resolve(_yaml.MappingNode, None, start_event.implicit)
        node = types.Node(
            types.NodeKind.MAPPING,
            tag=tag,
            anchor=anchor or "",
            flow_style=start_event.flow_style,
        )
        _set_position(node, start_event)
        if anchor is not None:
            self._tree_anchors[anchor] = node
        while not self.check_event(_yaml.MappingEndEvent):
            node.content.append(self._compose_tree_node())
            node.content.append(self._compose_tree_node())
        self.get_event()
        return node


def _set_position(node: types.Node, event: _yaml.Event) -> None:
    mark = event.start_mark
    if mark is not None:
        node.line = mark.line + 1
        node.column = mark.column + 1


def load(stream: _typing.Any) -> types.Node | None:
    """
    Compose a single YAML document into a node tree.

    Args:
        stream: YAML content (string, bytes, or file-like object).

    Returns:
        A DOCUMENT node, or None if the stream holds no document.

    Raises:
        yaml.YAMLError: If the YAML is malformed, holds more than one
            document, or uses undefined or duplicate anchors.
    """
    loader = _TreeLoader(stream)
    try:
        return loader.load_tree()
    finally:
        loader.dispose()


# =============================================================================
# Emitting
# =============================================================================


class _EventWriter:
    """
    Turns a node tree into PyYAML emitter events.

    Aliases are written by anchor name, resolving a name to its latest
    definition. An alias whose anchor has not been written yet is expanded
    in place and defines the anchor there, so the output never references
    an anchor before it exists. A name defined by two different nodes gets
    a numeric suffix on the second definition.
    """

    def __init__(self, resolver: _yaml.resolver.BaseResolver) -> None:
        self._resolver = resolver
        self._names: dict[int, str] = {}
        self._current: dict[str, str] = {}
        self._used: set[str] = set()
        self._active: set[int] = set()

    def events(self, tree: types.Node | None) -> _typing.Iterator[_yaml.Event]:
        yield _yaml.StreamStartEvent()
        if tree is not None:
            root = tree.root if tree.kind is types.NodeKind.DOCUMENT else tree
            yield _yaml.DocumentStartEvent(explicit=False)
            yield from self._node(root)
            yield _yaml.DocumentEndEvent(explicit=False)
        yield _yaml.StreamEndEvent()

    def _define(self, node: types.Node) -> str | None:
        if not node.anchor:
            return None
        name = node.anchor
        suffix = 1
        while name in self._used:
            suffix += 1
            name = f"{node.anchor}_{suffix}"
        self._used.add(name)
        self._names[id(node)] = name
        self._current[node.anchor] = name
        return name

    def _node(self, node: types.Node) -> _typing.Iterator[_yaml.Event]:
        if node.kind is types.NodeKind.ALIAS:
            target = node.target
            if target is None:
                raise _yaml.serializer.SerializerError(
                    f"alias without target at {node.describe()}"
                )
            if target.anchor in self._current:
                yield _yaml.AliasEvent(self._current[target.anchor])
                return
            node = target

        if id(node) in self._names:
            yield _yaml.AliasEvent(self._names[id(node)])
            return
        if id(node) in self._active:
            raise _yaml.serializer.SerializerError(
                f"recursive structure without anchor at {node.describe()}"
            )

        anchor = self._define(node)
        self._active.add(id(node))
        try:
            match node.kind:
                case types.NodeKind.SCALAR:
                    yield self._scalar_event(node, anchor)
                case types.NodeKind.SEQUENCE:
                    implicit = node.tag == self._resolver.resolve(_yaml.SequenceNode, None, True)
                    yield _yaml.SequenceStartEvent(
                        anchor, node.tag or None, implicit, flow_style=node.flow_style
                    )
                    for item in node.content:
                        yield from self._node(item)
                    yield _yaml.SequenceEndEvent()
                case types.NodeKind.MAPPING:
                    implicit = node.tag == self._resolver.resolve(_yaml.MappingNode, None, True)
                    yield _yaml.MappingStartEvent(
                        anchor, node.tag or None, implicit, flow_style=node.flow_style
                    )
                    for item in node.content:
                        yield from self._node(item)
                    yield _yaml.MappingEndEvent()
                case _:
                    raise _yaml.serializer.SerializerError(
                        f"cannot emit {node.describe()} inside a document"
                    )
        finally:
            self._active.discard(id(node))

    def _scalar_event(self, node: types.Node, anchor: str | None) -> _yaml.ScalarEvent:
        tag = node.tag or types.STR_TAG
        detected_tag = self._resolver.resolve(_yaml.ScalarNode, node.value, (True, False))
        default_tag = self._resolver.resolve(_yaml.ScalarNode, node.value, (False, True))
        implicit = (tag == detected_tag, tag == default_tag)
        return _yaml.ScalarEvent(anchor, tag, implicit, node.value, style=node.style)


def emit(
    tree: types.Node | None,
    stream: _typing.TextIO | None = None,
    *,
    indent: int | None = None,
    width: int | None = None,
) -> str | None:
    """
    Write a node tree as YAML.

    Args:
        tree: DOCUMENT node or bare root node. None writes an empty stream.
        stream: Text stream to write to. If None, the YAML is returned.
        indent: Indentation width passed to the emitter.
        width: Preferred line width passed to the emitter.

    Returns:
        The YAML text if no stream was given, otherwise None.
    """
    getvalue = None
    if stream is None:
        stream = _io.StringIO()
        getvalue = stream.getvalue

    dumper = _yaml.SafeDumper(stream, indent=indent, width=width, allow_unicode=True)
    try:
        for event in _EventWriter(dumper).events(tree):
            dumper.emit(event)
    finally:
        dumper.dispose()

    if getvalue is not None:
        return getvalue()
    return None


# =============================================================================
# Python data conversion
# =============================================================================


class _GraphBuilder:
    """
    Converts a node tree into a PyYAML representation graph.

    Aliases become shared PyYAML nodes, resolved by anchor name in
    document order (see `AnchorTable`). Only anchored nodes are shared:
    an unanchored node reached twice, as merged copies do, is built twice,
    the same way a reader of the emitted text sees two separate values.
    """

    def __init__(self) -> None:
        self._anchors = aliases.AnchorTable()
        self._built: dict[int, _yaml.Node] = {}
        self._active: set[int] = set()

    def build(self, node: types.Node) -> _yaml.Node:
        if node.kind is types.NodeKind.ALIAS:
            target = self._anchors.lookup(node)
            if target is None:
                raise _yaml.constructor.ConstructorError(
                    None, None, f"alias without target at {node.describe()}"
                )
            return self.build(target)

        if node.kind is types.NodeKind.DOCUMENT:
            return self.build(node.root)

        if id(node) in self._built:
            return self._built[id(node)]
        if id(node) in self._active:
            raise _yaml.constructor.ConstructorError(
                None, None, f"recursive structure without anchor at {node.describe()}"
            )
        self._anchors.register(node)

        self._active.add(id(node))
        try:
            return self._build_node(node)
        finally:
            self._active.discard(id(node))

    def _build_node(self, node: types.Node) -> _yaml.Node:
        match node.kind:
            case types.NodeKind.SCALAR:
                built: _yaml.Node = _yaml.ScalarNode(
                    node.tag or types.STR_TAG, node.value, style=node.style
                )
                self._share(node, built)
            case types.NodeKind.SEQUENCE:
                items: list[_yaml.Node] = []
                built = _yaml.SequenceNode(node.tag or types.SEQ_TAG, items)
                self._share(node, built)
                items.extend(self.build(item) for item in node.content)
            case types.NodeKind.MAPPING:
                pairs: list[tuple[_yaml.Node, _yaml.Node]] = []
                built = _yaml.MappingNode(node.tag or types.MAP_TAG, pairs)
                self._share(node, built)
                for key, value in node.pairs():
                    pairs.append((self.build(key), self.build(value)))
            case _:
                raise _yaml.constructor.ConstructorError(
                    None, None, f"cannot construct {node.describe()}"
                )
        return built

    def _share(self, node: types.Node, built: _yaml.Node) -> None:
        # Registered before the children, so recursive anchors resolve
        if node.anchor:
            self._built[id(node)] = built


def to_python(tree: types.Node | None) -> _typing.Any:
    """
    Construct plain Python data from a node tree.

    Construction uses PyYAML's safe constructor, so the result is exactly
    what `yaml.safe_load` returns for the emitted text of `tree`.
    """
    if tree is None:
        return None

    graph = _GraphBuilder().build(tree)
    loader = _yaml.SafeLoader("")
    try:
        return loader.construct_document(graph)
    finally:
        loader.dispose()


def from_python(data: _typing.Any) -> types.Node:
    """
    Represent plain Python data as a DOCUMENT node tree.

    Objects referenced more than once become an anchored node plus alias
    nodes. Mapping key order is kept.
    """
    dumper = _yaml.SafeDumper(_io.StringIO(), sort_keys=False)
    try:
        graph = dumper.represent_data(data)
    finally:
        dumper.dispose()

    converted: dict[int, types.Node] = {}
    counter = [0]

    def convert(yaml_node: _yaml.Node) -> types.Node:
        if id(yaml_node) in converted:
            shared = converted[id(yaml_node)]
            if not shared.anchor:
                counter[0] += 1
                shared.anchor = f"id{counter[0]:03d}"
            return types.alias(shared)

        if isinstance(yaml_node, _yaml.ScalarNode):
            node = types.Node(
                types.NodeKind.SCALAR,
                tag=yaml_node.tag,
                value=yaml_node.value,
                style=yaml_node.style,
            )
            converted[id(yaml_node)] = node
        elif isinstance(yaml_node, _yaml.SequenceNode):
            node = types.Node(
                types.NodeKind.SEQUENCE, tag=yaml_node.tag, flow_style=yaml_node.flow_style
            )
            converted[id(yaml_node)] = node
            node.content.extend(convert(item) for item in yaml_node.value)
        else:
            node = types.Node(
                types.NodeKind.MAPPING, tag=yaml_node.tag, flow_style=yaml_node.flow_style
            )
            converted[id(yaml_node)] = node
            for key, value in yaml_node.value:
                node.content.append(convert(key))
                node.content.append(convert(value))
        return node

    return types.document(convert(graph))
