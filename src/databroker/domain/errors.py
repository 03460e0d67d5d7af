"""Broker error taxonomy.

Every error carries an HTTP-like ``status`` and a tuple of :class:`ErrorDetail`
entries in the ``name / reason`` shape of RFC 7807, extended with ``index`` so a
rejected batch can point at the offending element.
"""

from __future__ import annotations

from dataclasses import dataclass
from http import HTTPStatus
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from collections.abc import Iterable


@dataclass(frozen=True, slots=True)
class ErrorDetail:
    name: str
    reason: str
    index: int | None = None

    def __str__(self) -> str:
        where = self.name if self.index is None else f"{self.name}[{self.index}]"
        return f"{where}: {self.reason}"


class BrokerError(Exception):
    """Base class for failures surfaced to broker callers."""

    status: ClassVar[HTTPStatus] = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str | None = None, details: Iterable[ErrorDetail] = ()) -> None:
        self.details: tuple[ErrorDetail, ...] = tuple(details)
        if message is None:
            message = "; ".join(str(detail) for detail in self.details) or self.status.phrase
        super().__init__(message)
        self.message = message


class NotFoundError(BrokerError):
    """Unknown connector, entity type, policy or catalog record."""

    status = HTTPStatus.NOT_FOUND


class UnauthorizedError(BrokerError):
    """The session id is not the connector's currently open session."""

    status = HTTPStatus.UNAUTHORIZED


class BadRequestError(BrokerError):
    """Invalid mode/action token, schema violations or a malformed filter query."""

    status = HTTPStatus.BAD_REQUEST


class InternalError(BrokerError):
    """Storage failure."""

    status = HTTPStatus.INTERNAL_SERVER_ERROR
