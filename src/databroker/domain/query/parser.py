"""Parser for untrusted filter documents.

The grammar is a closed subset of the MongoDB query language. Documents are
canonicalised (keys sorted at every level) before parsing so operator
sub-documents parse identically whatever key order the client used.
"""

from __future__ import annotations

import json
import math
import re
from typing import TYPE_CHECKING, Any, Final

from databroker.domain.query import geometry
from databroker.domain.query.nodes import (
    Compare,
    CompareOp,
    Contains,
    Match,
    Membership,
    Near,
    Not,
    Within,
    conjoin,
    disjoin,
)

if TYPE_CHECKING:
    from databroker.domain.query.nodes import FieldPath, Node, Scalar

ALLOWED_OPERATORS: Final[frozenset[str]] = frozenset(
    {
        "$and",
        "$contains",
        "$eq",
        "$geometry",
        "$gt",
        "$gte",
        "$in",
        "$lt",
        "$lte",
        "$max",
        "$min",
        "$ne",
        "$near",
        "$nin",
        "$nor",
        "$not",
        "$options",
        "$or",
        "$regex",
        "$within",
    }
)

LOGICAL_OPERATORS: Final[frozenset[str]] = frozenset({"$and", "$or", "$nor", "$not"})
REGEX_OPTIONS: Final[frozenset[str]] = frozenset("imsx")

_ORDERING_OPS: Final[dict[str, CompareOp]] = {
    "$lt": CompareOp.LT,
    "$lte": CompareOp.LTE,
    "$gt": CompareOp.GT,
    "$gte": CompareOp.GTE,
}


class QuerySyntaxError(ValueError):
    """Raised when a filter document uses allowed operators in an invalid shape."""


class UnknownOperatorError(QuerySyntaxError):
    """Raised when a filter document uses an operator outside the allow-list."""

    def __init__(self, operator: str) -> None:
        super().__init__(f"unrecognised operation {operator}")
        self.operator = operator


def canonical_json(value: object) -> str:
    """Serialise ``value`` in the canonical form documents are stored in."""

    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def canonicalize(value: Any) -> Any:
    """Return a copy of ``value`` with every mapping's keys in sorted order."""

    if isinstance(value, dict):
        return {str(key): canonicalize(value[key]) for key in sorted(value, key=str)}
    if isinstance(value, list):
        return [canonicalize(item) for item in value]
    return value


def unknown_operators(value: Any) -> list[str]:
    """Every ``$``-prefixed key in ``value`` that is not an allowed operator."""

    found: list[str] = []
    if isinstance(value, dict):
        for key, item in value.items():
            if isinstance(key, str) and key.startswith("$") and key not in ALLOWED_OPERATORS:
                found.append(key)
            found.extend(unknown_operators(item))
    elif isinstance(value, list):
        for item in value:
            found.extend(unknown_operators(item))
    return found


def parse(document: object) -> Node:
    """Parse a decoded filter document into an expression tree."""

    unknown = unknown_operators(document)
    if unknown:
        raise UnknownOperatorError(unknown[0])
    if not isinstance(document, dict):
        raise QuerySyntaxError("a query must be a JSON object")
    return _document(canonicalize(document))


def _document(document: dict[str, Any]) -> Node:
    clauses: list[Node] = []
    for key, value in document.items():
        if key.startswith("$"):
            clauses.append(_logical(key, value))
        else:
            clauses.append(_field(_split_path(key), value))
    return conjoin(*clauses)


def _logical(operator: str, operand: Any) -> Node:
    if operator == "$not":
        if not isinstance(operand, dict):
            raise QuerySyntaxError("$not expects a query object")
        return Not(_document(operand))
    if operator not in {"$and", "$or", "$nor"}:
        raise QuerySyntaxError(f"{operator} is not valid at query level")
    if not isinstance(operand, list) or not operand:
        raise QuerySyntaxError(f"{operator} expects a non-empty array of queries")
    children: list[Node] = []
    for item in operand:
        if not isinstance(item, dict):
            raise QuerySyntaxError(f"{operator} expects an array of query objects")
        children.append(_document(item))
    if operator == "$and":
        return conjoin(*children)
    if operator == "$or":
        return disjoin(*children)
    return Not(disjoin(*children))


def _split_path(key: str) -> FieldPath:
    segments = tuple(key.split("."))
    if any(not segment or '"' in segment for segment in segments):
        raise QuerySyntaxError(f"invalid field path {key!r}")
    return segments


def _is_operator_document(value: Any) -> bool:
    return isinstance(value, dict) and any(str(key).startswith("$") for key in value)


def _field(path: FieldPath, value: Any) -> Node:
    if _is_operator_document(value):
        if not all(key.startswith("$") for key in value):
            raise QuerySyntaxError("operators and fields cannot be mixed")
        return _operators(path, value)
    return _equals(path, CompareOp.EQ, value)


def _equals(path: FieldPath, op: CompareOp, value: Any) -> Node:
    if isinstance(value, (dict, list)):
        if unknown_operators(value) or _is_operator_document(value):
            raise QuerySyntaxError("operators are not allowed inside literal values")
        return Compare(path, op, canonical_json(value), structured=True)
    return Compare(path, op, _scalar(value))


def _scalar(value: Any) -> Scalar:
    if value is None or isinstance(value, (str, bool)):
        return value
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            raise QuerySyntaxError("numbers must be finite")
        return value
    raise QuerySyntaxError(f"unsupported value {value!r}")


def _ordered(value: Any, operator: str) -> Scalar:
    if isinstance(value, bool) or value is None or isinstance(value, (dict, list)):
        raise QuerySyntaxError(f"{operator} expects a number or a string")
    return _scalar(value)


def _operators(path: FieldPath, operators: dict[str, Any]) -> Node:
    if "$options" in operators and "$regex" not in operators:
        raise QuerySyntaxError("$options requires $regex")
    clauses: list[Node] = []
    for operator, operand in operators.items():
        match operator:
            case "$eq":
                clauses.append(_equals(path, CompareOp.EQ, operand))
            case "$ne":
                clauses.append(_equals(path, CompareOp.NE, operand))
            case "$lt" | "$lte" | "$gt" | "$gte":
                op = _ORDERING_OPS[operator]
                clauses.append(Compare(path, op, _ordered(operand, operator)))
            case "$in" | "$nin":
                if not isinstance(operand, list):
                    raise QuerySyntaxError(f"{operator} expects an array")
                values = tuple(_scalar(item) for item in operand)
                clauses.append(Membership(path, values, negated=operator == "$nin"))
            case "$regex":
                clauses.append(_regex(path, operand, operators.get("$options", "")))
            case "$options":
                continue
            case "$contains":
                clauses.append(Contains(path, _element(operand)))
            case "$near":
                clauses.append(_near(path, operand))
            case "$within":
                clauses.append(_within(path, operand))
            case "$not":
                if not _is_operator_document(operand):
                    raise QuerySyntaxError("$not on a field expects an operator object")
                clauses.append(Not(_field(path, operand)))
            case _:
                raise QuerySyntaxError(f"{operator} is not valid on a field")
    return conjoin(*clauses)


def _regex(path: FieldPath, pattern: Any, options: Any) -> Node:
    if not isinstance(pattern, str):
        raise QuerySyntaxError("$regex expects a string")
    if not isinstance(options, str) or not set(options) <= REGEX_OPTIONS:
        raise QuerySyntaxError("$options may only contain i, m, s and x")
    flags = "".join(sorted(set(options)))
    try:
        re.compile(f"(?{flags}){pattern}" if flags else pattern)
    except re.error as exc:
        raise QuerySyntaxError(f"invalid regular expression: {exc}") from exc
    return Match(path, pattern, flags)


def _element(operand: Any) -> Node:
    if isinstance(operand, dict):
        keys = list(operand)
        if keys and all(key.startswith("$") for key in keys) and not set(keys) & LOGICAL_OPERATORS:
            return _operators((), operand)
        return _document(operand)
    return _equals((), CompareOp.EQ, operand)


def _distance(value: Any, operator: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise QuerySyntaxError(f"{operator} expects a number of metres")
    if not math.isfinite(value) or value < 0:
        raise QuerySyntaxError(f"{operator} must be a finite, non-negative distance")
    return float(value)


def _geometry(operand: Any, operator: str, types: frozenset[str]) -> str:
    if not isinstance(operand, dict) or "$geometry" not in operand:
        raise QuerySyntaxError(f"{operator} expects a $geometry")
    try:
        shape = geometry.load(operand["$geometry"], types=types)
    except geometry.GeometryError as exc:
        raise QuerySyntaxError(f"{operator}: {exc}") from exc
    return canonical_json(shape)


def _near(path: FieldPath, operand: Any) -> Node:
    shape = _geometry(operand, "$near", geometry.GEOMETRY_TYPES)
    extra = set(operand) - {"$geometry", "$min", "$max"}
    if extra:
        raise QuerySyntaxError(f"$near does not accept {', '.join(sorted(extra))}")
    minimum = _distance(operand.get("$min", 0), "$min")
    maximum = _distance(operand["$max"], "$max") if "$max" in operand else None
    if maximum is not None and maximum < minimum:
        raise QuerySyntaxError("$max must not be smaller than $min")
    return Near(path, shape, minimum, maximum)


def _within(path: FieldPath, operand: Any) -> Node:
    shape = _geometry(operand, "$within", geometry.AREA_TYPES)
    if set(operand) != {"$geometry"}:
        raise QuerySyntaxError("$within only accepts $geometry")
    return Within(path, shape)
