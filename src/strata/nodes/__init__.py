"""
Document tree model shared by the merge engine and the secret redactor.

Example:
    >>> import strata.nodes as nodes
    >>> tree = nodes.load("a: &ref {x: 1}\nb: *ref\n")
    >>> tree.root.content[3].is_alias
    True
    >>> nodes.to_python(tree)
    {'a': {'x': 1}, 'b': {'x': 1}}
"""

from strata.nodes._aliases import AliasCycleError, AnchorTable, resolve
from strata.nodes._types import (
    BOOL_TAG,
    FLOAT_TAG,
    INT_TAG,
    MAP_TAG,
    NULL_TAG,
    SEQ_TAG,
    STR_TAG,
    Node,
    NodeKind,
    alias,
    document,
    mapping,
    scalar,
    sequence,
    well_formed,
)
from strata.nodes._yaml import emit, from_python, load, to_python

__all__ = [
    "BOOL_TAG",
    "FLOAT_TAG",
    "INT_TAG",
    "MAP_TAG",
    "NULL_TAG",
    "SEQ_TAG",
    "STR_TAG",
    "AliasCycleError",
    "AnchorTable",
    "Node",
    "NodeKind",
    "alias",
    "document",
    "emit",
    "from_python",
    "load",
    "mapping",
    "resolve",
    "scalar",
    "sequence",
    "to_python",
    "well_formed",
]
