from __future__ import annotations

from databroker.domain.model import CatalogRecord
from databroker.domain.views import apply_masks, instance, instances

RECORD = CatalogRecord(
    connector_id="c" * 64,
    public_id="p" * 64,
    vendor_id="Q142",
    document={
        "name": "France",
        "entity": {"iso_code": "FR", "economy": {"gdp": 3, "currency": "EUR"}},
        "instance": {"url": "https://example.org/fr"},
        "timeseries": {"gdp": {"unit": "USD"}},
    },
    entity_type="country",
)


def test_full_instance_view() -> None:
    assert instance(RECORD) == {
        "id": "p" * 64,
        "type": "country",
        "name": "France",
        "entity": {"iso_code": "FR", "economy": {"gdp": 3, "currency": "EUR"}},
        "instance": {"url": "https://example.org/fr"},
        "timeseries": {"gdp": {"unit": "USD"}},
    }


def test_masks_only_apply_to_their_entity_type() -> None:
    entity = RECORD.document["entity"]

    masked = apply_masks("country", entity, ["country.economy.gdp", "city.iso_code"])

    assert masked == {"iso_code": "FR", "economy": {"currency": "EUR"}}
    assert entity["economy"]["gdp"] == 3


def test_masks_ignore_missing_paths() -> None:
    masked = apply_masks("country", {"iso_code": "FR"}, ["country.economy.gdp", "country"])

    assert masked == {"iso_code": "FR"}


def test_listing_view_is_compact() -> None:
    assert instances([RECORD]) == [{"id": "p" * 64, "type": "country", "name": "France"}]
