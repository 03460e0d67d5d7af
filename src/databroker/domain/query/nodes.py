"""Expression tree produced by the filter parser.

Nodes are immutable and hashable, so two filters that differ only in key order
parse to equal trees.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

type FieldPath = tuple[str, ...]
type Scalar = str | int | float | bool | None


class CompareOp(StrEnum):
    EQ = "$eq"
    NE = "$ne"
    LT = "$lt"
    LTE = "$lte"
    GT = "$gt"
    GTE = "$gte"


@dataclass(frozen=True, slots=True)
class Always:
    """Matches every record."""


@dataclass(frozen=True, slots=True)
class Never:
    """Matches no record."""


@dataclass(frozen=True, slots=True)
class Compare:
    """Field comparison; ``structured`` values hold canonical JSON text of an object/array."""

    path: FieldPath
    op: CompareOp
    value: Scalar
    structured: bool = False


@dataclass(frozen=True, slots=True)
class Membership:
    path: FieldPath
    values: tuple[Scalar, ...]
    negated: bool = False


@dataclass(frozen=True, slots=True)
class Match:
    path: FieldPath
    pattern: str
    flags: str = ""


@dataclass(frozen=True, slots=True)
class Contains:
    """Some element of the array at ``path`` satisfies ``element`` (paths relative to it)."""

    path: FieldPath
    element: Node


@dataclass(frozen=True, slots=True)
class Near:
    path: FieldPath
    geometry: str
    minimum: float = 0.0
    maximum: float | None = None


@dataclass(frozen=True, slots=True)
class Within:
    path: FieldPath
    geometry: str


@dataclass(frozen=True, slots=True)
class And:
    children: tuple[Node, ...]


@dataclass(frozen=True, slots=True)
class Or:
    children: tuple[Node, ...]


@dataclass(frozen=True, slots=True)
class Not:
    child: Node


type Node = Always | Never | Compare | Membership | Match | Contains | Near | Within | And | Or | Not


def conjoin(*nodes: Node) -> Node:
    """AND the given nodes, folding away trivial members."""

    children: list[Node] = []
    for node in nodes:
        if isinstance(node, Never):
            return Never()
        if isinstance(node, Always):
            continue
        children.extend(node.children if isinstance(node, And) else (node,))
    if not children:
        return Always()
    if len(children) == 1:
        return children[0]
    return And(tuple(children))


def disjoin(*nodes: Node) -> Node:
    """OR the given nodes; an empty disjunction matches nothing."""

    children: list[Node] = []
    for node in nodes:
        if isinstance(node, Always):
            return Always()
        if isinstance(node, Never):
            continue
        children.append(node)
    if not children:
        return Never()
    if len(children) == 1:
        return children[0]
    return Or(tuple(children))
