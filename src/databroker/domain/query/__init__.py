"""Filter-document parsing and translation."""

from __future__ import annotations

from databroker.domain.query.nodes import (
    Always,
    And,
    CompareOp,
    Compare,
    Contains,
    Match,
    Membership,
    Near,
    Never,
    Node,
    Not,
    Or,
    Within,
    conjoin,
    disjoin,
)
from databroker.domain.query.parser import (
    ALLOWED_OPERATORS,
    QuerySyntaxError,
    UnknownOperatorError,
    canonical_json,
    canonicalize,
    parse,
)
from databroker.domain.query.translator import QueryError, QueryTranslator, TranslatedQuery

__all__ = [
    "ALLOWED_OPERATORS",
    "Always",
    "And",
    "Compare",
    "CompareOp",
    "Contains",
    "Match",
    "Membership",
    "Near",
    "Never",
    "Node",
    "Not",
    "Or",
    "QueryError",
    "QuerySyntaxError",
    "QueryTranslator",
    "TranslatedQuery",
    "UnknownOperatorError",
    "Within",
    "canonical_json",
    "canonicalize",
    "conjoin",
    "disjoin",
    "parse",
]
