from __future__ import annotations

import sqlite3

import pytest

from databroker.adapters.sqlalchemy.engine import (
    _compiled,
    geo_distance,
    geo_within,
    register_functions,
    regexp,
)

PARIS = '{"type": "Point", "coordinates": [2.35, 48.85]}'
BERLIN = '{"type": "Point", "coordinates": [13.4, 52.52]}'
BOX = '{"type": "Polygon", "coordinates": [[[0, 45], [5, 45], [5, 50], [0, 50], [0, 45]]]}'


def test_geo_distance_in_metres() -> None:
    distance = geo_distance(PARIS, BERLIN)

    assert distance is not None
    assert 870_000 < distance < 890_000
    assert geo_distance(PARIS, PARIS) == pytest.approx(0.0)


@pytest.mark.parametrize("value", [None, 42, "Paris", '{"type": "Circle"}', '{"type": "Point"}'])
def test_unusable_geometries_yield_null(value: object) -> None:
    assert geo_distance(value, PARIS) is None
    assert geo_within(value, BOX) is None


def test_geo_within_requires_an_area() -> None:
    assert geo_within(PARIS, BOX) == 1
    assert geo_within(BERLIN, BOX) == 0
    assert geo_within(PARIS, BERLIN) is None


def test_regexp_flags_and_non_text_values() -> None:
    assert regexp("^fr", "i", "France") == 1
    assert regexp("^fr", "", "France") == 0
    assert regexp("^fr", "i", 7) is None
    assert regexp("(", "", "France") is None


def test_functions_are_callable_from_sql() -> None:
    connection = sqlite3.connect(":memory:")
    try:
        register_functions(connection)
        row = connection.execute(
            "SELECT broker_regexp('an', 'i', 'FRANCE'), broker_geo_within(?, ?)",
            (PARIS, BOX),
        ).fetchone()
    finally:
        connection.close()

    assert row == (1, 1)


def test_compiled_patterns_are_bounded() -> None:
    _compiled.cache_clear()

    for index in range(300):
        regexp(f"^value{index}$", "", "value")

    info = _compiled.cache_info()
    assert info.maxsize == 256
    assert info.currsize == 256
