"""Compile untrusted filter text into predicates, never raising on bad input."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from databroker.domain.errors import ErrorDetail
from databroker.domain.query.nodes import Always, Never, conjoin
from databroker.domain.query.parser import QuerySyntaxError, UnknownOperatorError, parse

if TYPE_CHECKING:
    from collections.abc import Mapping

    from databroker.domain.query.nodes import Node

log = logging.getLogger(__name__)


class QueryError(StrEnum):
    NOT_JSON = "is-not-valid-json"
    UNRECOGNISED_OPERATION = "has-unrecognised-operations"
    CANNOT_BE_PARSED = "cannot-be-parsed"

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_MESSAGES: dict[QueryError, str] = {
    QueryError.NOT_JSON: "the query is not valid JSON",
    QueryError.UNRECOGNISED_OPERATION: "the query contains unrecognised operations",
    QueryError.CANNOT_BE_PARSED: "the query cannot be parsed",
}


@dataclass(frozen=True, slots=True)
class TranslatedQuery:
    """Outcome of a translation; invalid queries carry a ``Never`` predicate."""

    predicate: Node
    valid: bool = True
    error: QueryError | None = None
    reason: str | None = None

    @classmethod
    def failed(cls, error: QueryError, reason: str) -> TranslatedQuery:
        return cls(predicate=Never(), valid=False, error=error, reason=reason)


def _reject_constant(value: str) -> float:
    raise ValueError(f"{value} is not a JSON number")


class QueryTranslator:
    """Turns filter documents (or their JSON text) into expression trees."""

    def translate(self, query: str | Mapping[str, object] | None) -> TranslatedQuery:
        if query is None:
            return TranslatedQuery(predicate=Always())
        document: object = query
        if isinstance(query, str):
            try:
                document = json.loads(query, parse_constant=_reject_constant)
            except (ValueError, RecursionError) as exc:
                return TranslatedQuery.failed(QueryError.NOT_JSON, str(exc))
        try:
            return TranslatedQuery(predicate=parse(document))
        except UnknownOperatorError as exc:
            return TranslatedQuery.failed(QueryError.UNRECOGNISED_OPERATION, str(exc))
        except (QuerySyntaxError, RecursionError) as exc:
            return TranslatedQuery.failed(QueryError.CANNOT_BE_PARSED, str(exc))

    def check(self, query: str | Mapping[str, object], *, name: str = "q") -> list[ErrorDetail]:
        """Validation diagnostics for a client filter; empty when it is usable."""

        translated = self.translate(query)
        if translated.valid or translated.error is None:
            return []
        return [ErrorDetail(name=name, reason=f"{translated.error.message}: {translated.reason}")]

    def scope(self, *queries: TranslatedQuery) -> Node:
        """AND the given translations; any invalid member closes the scope entirely."""

        for query in queries:
            if not query.valid:
                log.warning("Closing query scope over invalid filter: %s", query.reason)
                return Never()
        return conjoin(*(query.predicate for query in queries))
