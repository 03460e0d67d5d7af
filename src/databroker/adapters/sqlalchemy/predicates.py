"""Compile filter expression trees into SQLAlchemy boolean expressions.

Fields are addressed inside a JSON column with ``json_extract``; every value
taken from a filter is a bound parameter, never SQL text.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, assert_never

from sqlalchemy import and_, case, exists, false, func, literal, not_, or_, select, true

from databroker.adapters.sqlalchemy.engine import GEO_DISTANCE, GEO_WITHIN, REGEXP
from databroker.domain.query import (
    Always,
    And,
    Compare,
    CompareOp,
    Contains,
    Match,
    Membership,
    Near,
    Never,
    Not,
    Or,
    Within,
)

if TYPE_CHECKING:
    from sqlalchemy.sql.elements import ColumnElement

    from databroker.domain.query import Node
    from databroker.domain.query.nodes import FieldPath, Scalar


def json_path(path: FieldPath) -> str:
    """SQLite JSON path for ``path``; numeric segments index arrays.

    SQLite reads quoted labels verbatim, so segments must not contain ``"``.
    """

    parts = ["$"]
    for segment in path:
        if segment.isascii() and segment.isdigit():
            parts.append(f"[{int(segment)}]")
        else:
            parts.append(f'."{segment}"')
    return "".join(parts)


def _field(base: ColumnElement[Any], path: FieldPath) -> ColumnElement[Any]:
    return func.json_extract(base, json_path(path))


def _kind(base: ColumnElement[Any], path: FieldPath, value: Scalar) -> ColumnElement[bool]:
    # json_extract flattens true to 1 and arrays to text; json_type keeps them apart
    json_type = func.json_type(base, json_path(path))
    if isinstance(value, bool):
        return json_type == ("true" if value else "false")
    if isinstance(value, str):
        return json_type == "text"
    return json_type.in_(("integer", "real"))


def _equals(base: ColumnElement[Any], path: FieldPath, value: Scalar) -> ColumnElement[bool]:
    if value is None:
        return _field(base, path).is_(None)
    if isinstance(value, bool):
        return _kind(base, path, value)
    return and_(_kind(base, path, value), _field(base, path) == literal(value))


def _structured(node: Compare, base: ColumnElement[Any]) -> ColumnElement[bool]:
    return and_(
        func.json_type(base, json_path(node.path)).in_(("object", "array")),
        _field(base, node.path) == func.json(literal(node.value)),
    )


def _compare(node: Compare, base: ColumnElement[Any]) -> ColumnElement[bool]:
    if node.op in {CompareOp.EQ, CompareOp.NE}:
        if node.structured:
            equal = _structured(node, base)
        else:
            equal = _equals(base, node.path, node.value)
        if node.op is CompareOp.EQ:
            return equal
        return not_(func.coalesce(equal, false()))

    if node.value is None or node.structured:
        return false()
    field = _field(base, node.path)
    value = literal(node.value)
    guard = _kind(base, node.path, node.value)
    match node.op:
        case CompareOp.LT:
            return and_(guard, field < value)
        case CompareOp.LTE:
            return and_(guard, field <= value)
        case CompareOp.GT:
            return and_(guard, field > value)
        case CompareOp.GTE:
            return and_(guard, field >= value)
        case _:
            raise AssertionError(node.op)


def _membership(node: Membership, base: ColumnElement[Any]) -> ColumnElement[bool]:
    member = or_(false(), *(_equals(base, node.path, value) for value in node.values))
    if node.negated:
        return not_(func.coalesce(member, false()))
    return member


def _match(node: Match, base: ColumnElement[Any]) -> ColumnElement[bool]:
    field = _field(base, node.path)
    return getattr(func, REGEXP)(literal(node.pattern), literal(node.flags), field) == 1


def _contains(node: Contains, base: ColumnElement[Any]) -> ColumnElement[bool]:
    elements = func.json_each(base, json_path(node.path)).table_valued("value", "type").alias()
    # re-encode scalar elements so paths relative to the element stay valid JSON lookups
    element = case(
        (elements.c.type.in_(("object", "array")), elements.c.value),
        (elements.c.type.in_(("true", "false", "null")), elements.c.type),
        else_=func.json_quote(elements.c.value),
    )
    return exists(
        select(literal(1)).select_from(elements).where(compile_predicate(node.element, element))
    )


def _near(node: Near, base: ColumnElement[Any]) -> ColumnElement[bool]:
    distance = getattr(func, GEO_DISTANCE)(_field(base, node.path), literal(node.geometry))
    clauses = [distance >= node.minimum]
    if node.maximum is not None:
        clauses.append(distance <= node.maximum)
    return and_(*clauses)


def _within(node: Within, base: ColumnElement[Any]) -> ColumnElement[bool]:
    return getattr(func, GEO_WITHIN)(_field(base, node.path), literal(node.geometry)) == 1


def compile_predicate(node: Node, base: ColumnElement[Any]) -> ColumnElement[bool]:
    """Translate ``node`` into a boolean expression over the JSON in ``base``."""

    match node:
        case Always():
            return true()
        case Never():
            return false()
        case Compare():
            return _compare(node, base)
        case Membership():
            return _membership(node, base)
        case Match():
            return _match(node, base)
        case Contains():
            return _contains(node, base)
        case Near():
            return _near(node, base)
        case Within():
            return _within(node, base)
        case And(children=children):
            return and_(*(compile_predicate(child, base) for child in children))
        case Or(children=children):
            return or_(*(compile_predicate(child, base) for child in children))
        case Not(child=child):
            return not_(func.coalesce(compile_predicate(child, base), false()))
        case _:
            assert_never(node)
