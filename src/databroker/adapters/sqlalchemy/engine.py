"""Engine construction and the SQL functions filters compile against.

Filters reach into JSON documents with SQLite's ``json_extract``; geometry and
regular-expression tests are Python functions registered on every connection
so compiled predicates stay plain SQL expressions with bound parameters.
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import TYPE_CHECKING, Any, Final

from sqlalchemy import create_engine, event

from databroker.config import get_database_config
from databroker.domain.query import canonical_json, geometry

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

BUSY_TIMEOUT_SECONDS: Final[float] = 30.0

GEO_DISTANCE: Final[str] = "broker_geo_distance"
GEO_WITHIN: Final[str] = "broker_geo_within"
REGEXP: Final[str] = "broker_regexp"

_REGEX_FLAGS: Final[dict[str, re.RegexFlag]] = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
}


@lru_cache(maxsize=256)
def _compiled(pattern: str, flags: str) -> re.Pattern[str] | None:
    value = 0
    for flag in flags:
        value |= _REGEX_FLAGS.get(flag, 0)
    try:
        return re.compile(pattern, value)
    except re.error:
        return None


def _geometry(value: Any, types: frozenset[str]) -> dict[str, Any] | None:
    if not isinstance(value, str):
        return None
    try:
        return geometry.load(value, types=types)
    except geometry.GeometryError:
        return None


def geo_distance(value: Any, reference: Any) -> float | None:
    """Metres between a stored geometry and the reference; NULL when either is unusable."""

    stored = _geometry(value, geometry.GEOMETRY_TYPES)
    target = _geometry(reference, geometry.GEOMETRY_TYPES)
    if stored is None or target is None:
        return None
    return geometry.distance(stored, target)


def geo_within(value: Any, area: Any) -> int | None:
    stored = _geometry(value, geometry.GEOMETRY_TYPES)
    polygon = _geometry(area, geometry.AREA_TYPES)
    if stored is None or polygon is None:
        return None
    return int(geometry.within(stored, polygon))


def regexp(pattern: Any, flags: Any, value: Any) -> int | None:
    if not isinstance(value, str) or not isinstance(pattern, str):
        return None
    compiled = _compiled(pattern, flags if isinstance(flags, str) else "")
    if compiled is None:
        return None
    return int(compiled.search(value) is not None)


def register_functions(dbapi_connection: Any) -> None:
    """Install the broker's SQL functions on a raw sqlite3 connection."""

    dbapi_connection.create_function(GEO_DISTANCE, 2, geo_distance, deterministic=True)
    dbapi_connection.create_function(GEO_WITHIN, 2, geo_within, deterministic=True)
    dbapi_connection.create_function(REGEXP, 3, regexp, deterministic=True)


def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
    _ = connection_record
    register_functions(dbapi_connection)
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute(f"PRAGMA busy_timeout={int(BUSY_TIMEOUT_SECONDS * 1000)}")
    finally:
        cursor.close()


def create_broker_engine(database_uri: str | None = None) -> Engine:
    """Create an engine for ``database_uri`` (default: the configured database)."""

    uri = database_uri or get_database_config().uri
    engine = create_engine(
        uri,
        future=True,
        json_serializer=canonical_json,
    )
    if engine.dialect.name != "sqlite":
        log.warning("Database dialect %s is not supported; filters need SQLite", engine.dialect.name)
    install(engine)
    return engine


def install(engine: Engine) -> None:
    """Hook the connection setup into ``engine`` (idempotent)."""

    if not event.contains(engine, "connect", _on_connect):
        event.listen(engine, "connect", _on_connect)
