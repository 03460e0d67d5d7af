"""Filters compiled to SQL and evaluated by SQLite against stored documents."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import pytest

from databroker.adapters.sqlalchemy.predicates import json_path
from tests.helpers.catalog import FRANCE, GERMANY, NEPAL, contribute, records

if TYPE_CHECKING:
    from databroker.app import Broker
    from databroker.domain.model import Connector

FRANCE_BOX = {
    "type": "Polygon",
    "coordinates": [[[-5, 42], [8, 42], [8, 51], [-5, 51], [-5, 42]]],
}
PARIS = {"type": "Point", "coordinates": [2.35, 48.85]}


@pytest.fixture
def live_catalog(broker: Broker, wikipedia: Connector) -> Broker:
    contribute(broker, wikipedia.id)
    broker.registry.set_live(wikipedia.id)
    return broker


def _matching(broker: Broker, query: dict[str, Any]) -> list[str]:
    return sorted(str(item["name"]) for item in broker.catalog.query(json.dumps(query)))


@pytest.mark.parametrize(
    ("query", "expected"),
    [
        ({}, ["France", "Germany", "Nepal"]),
        ({"name": "France"}, ["France"]),
        ({"entity.iso_code": {"$eq": "DE"}}, ["Germany"]),
        ({"entity.iso_code": {"$ne": "DE"}}, ["France", "Nepal"]),
        ({"entity.missing": {"$ne": 1}}, ["France", "Germany", "Nepal"]),
        ({"entity.missing": None}, ["France", "Germany", "Nepal"]),
        ({"entity.iso_code": None}, []),
        ({"entity.population": {"$gte": 68000000, "$lt": 84000000}}, ["France"]),
        ({"entity.population": {"$lte": 30000000}}, ["Nepal"]),
        ({"entity.iso_code": {"$gt": "E"}}, ["France", "Nepal"]),
        ({"entity.population": {"$gt": "A"}}, []),
        ({"entity.landlocked": True}, ["Nepal"]),
        ({"entity.landlocked": False}, ["France", "Germany"]),
        ({"entity.iso_code": {"$in": ["FR", "NP"]}}, ["France", "Nepal"]),
        ({"entity.iso_code": {"$nin": ["FR", "NP"]}}, ["Germany"]),
        ({"entity.missing": {"$nin": ["x"]}}, ["France", "Germany", "Nepal"]),
        ({"entity.missing": {"$in": [None]}}, ["France", "Germany", "Nepal"]),
        ({"name": {"$regex": "^ge"}}, []),
        ({"name": {"$regex": "^ge", "$options": "i"}}, ["Germany"]),
        ({"entity.population": {"$regex": "6"}}, []),
        ({"entity.iso_code": {"$not": {"$eq": "FR"}}}, ["Germany", "Nepal"]),
        ({"entity.missing": {"$not": {"$eq": 1}}}, ["France", "Germany", "Nepal"]),
        ({"$or": [{"entity.iso_code": "FR"}, {"entity.continent": "asia"}]}, ["France", "Nepal"]),
        ({"$nor": [{"entity.iso_code": "FR"}, {"entity.continent": "asia"}]}, ["Germany"]),
        ({"$and": [{"entity.continent": "europe"}, {"entity.iso_code": "DE"}]}, ["Germany"]),
        ({"$not": {"entity.continent": "europe"}}, ["Nepal"]),
        ({"entity.capital.name": "Kathmandu"}, ["Nepal"]),
        ({"entity.cities.0.name": "Paris"}, ["France"]),
        ({"entity.capital.location": PARIS}, ["France"]),
        ({"entity.languages": ["ne", "en"]}, ["Nepal"]),
        ({"entity.languages": ["en", "ne"]}, []),
        ({"entity.languages": {"$contains": "en"}}, ["Nepal"]),
        ({"entity.cities": {"$contains": {"name": "Hamburg"}}}, ["Germany"]),
        ({"entity.cities": {"$contains": {"rank": {"$gte": 3}}}}, ["France"]),
        ({"entity.missing": {"$contains": "x"}}, []),
    ],
)
def test_filter_semantics(live_catalog: Broker, query: dict[str, Any], expected: list[str]) -> None:
    assert _matching(live_catalog, query) == expected


def test_near_with_distance_bounds(live_catalog: Broker) -> None:
    near_paris = {"$geometry": PARIS, "$max": 100_000}
    far_from_paris = {"$geometry": PARIS, "$min": 100_000, "$max": 1_000_000}

    assert _matching(live_catalog, {"entity.capital.location": {"$near": near_paris}}) == [
        "France"
    ]
    assert _matching(live_catalog, {"entity.capital.location": {"$near": far_from_paris}}) == [
        "Germany"
    ]
    assert _matching(live_catalog, {"entity.capital.name": {"$near": near_paris}}) == []


def test_within_polygon(live_catalog: Broker) -> None:
    query = {"entity.capital.location": {"$within": {"$geometry": FRANCE_BOX}}}

    assert _matching(live_catalog, query) == ["France"]


def test_json_path_quotes_segments() -> None:
    assert json_path(("entity", "iso_code")) == '$."entity"."iso_code"'
    assert json_path(("cities", "0", "name")) == '$."cities"[0]."name"'
    assert json_path(("a\\b",)) == '$."a\\b"'
    assert json_path(("²", "٣")) == '$."²"."٣"'
    assert json_path(()) == "$"


def test_non_ascii_digit_segments_are_object_keys(live_catalog: Broker) -> None:
    assert _matching(live_catalog, {"entity.²": 1}) == []
    assert _matching(live_catalog, {"entity.cities.٠.name": "Paris"}) == []


@pytest.fixture
def typed_catalog(broker: Broker, wikipedia: Connector) -> Broker:
    flagged = records(FRANCE, GERMANY, NEPAL)
    flagged[0]["instance"] = {"tags": ["x"], "flag": True, "rank": 1}
    flagged[1]["instance"] = {"tags": '["x"]', "flag": 1, "rank": True}
    flagged[2]["instance"] = {"tags": {"x": 1}, "flag": "1", "rank": 1.0}
    contribute(broker, wikipedia.id, flagged)
    broker.registry.set_live(wikipedia.id)
    return broker


@pytest.mark.parametrize(
    ("query", "expected"),
    [
        ({"instance.tags": ["x"]}, ["France"]),
        ({"instance.tags": {"$ne": ["x"]}}, ["Germany", "Nepal"]),
        ({"instance.tags": {"x": 1}}, ["Nepal"]),
        ({"instance.flag": True}, ["France"]),
        ({"instance.flag": 1}, ["Germany"]),
        ({"instance.flag": "1"}, ["Nepal"]),
        ({"instance.flag": {"$ne": True}}, ["Germany", "Nepal"]),
        ({"instance.flag": {"$in": [True, "1"]}}, ["France", "Nepal"]),
        ({"instance.flag": {"$nin": [1]}}, ["France", "Nepal"]),
        ({"instance.rank": 1}, ["France", "Nepal"]),
        ({"instance.rank": {"$gte": 1}}, ["France", "Nepal"]),
        ({"instance.rank": False}, []),
        ({"instance.tags": {"$contains": "x"}}, ["France"]),
    ],
)
def test_equality_respects_json_types(
    typed_catalog: Broker, query: dict[str, Any], expected: list[str]
) -> None:
    assert _matching(typed_catalog, query) == expected


def test_contains_matches_boolean_elements(broker: Broker, wikipedia: Connector) -> None:
    flagged = records(FRANCE, GERMANY)
    flagged[0]["instance"] = {"votes": [True, None]}
    flagged[1]["instance"] = {"votes": [1, 0]}
    contribute(broker, wikipedia.id, flagged)
    broker.registry.set_live(wikipedia.id)

    assert _matching(broker, {"instance.votes": {"$contains": True}}) == ["France"]
    assert _matching(broker, {"instance.votes": {"$contains": 1}}) == ["Germany"]
    assert _matching(broker, {"instance.votes": {"$contains": None}}) == ["France"]
