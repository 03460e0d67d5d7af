from __future__ import annotations

import pytest

from databroker.adapters.validation import JsonSchemaRecordValidator
from databroker.domain.errors import InternalError
from tests.helpers.catalog import COUNTRY_SCHEMA


def test_valid_documents_produce_no_errors() -> None:
    validator = JsonSchemaRecordValidator()

    assert validator.validate({"iso_code": "FR", "population": 68_000_000}, COUNTRY_SCHEMA) == []


def test_empty_schema_accepts_anything() -> None:
    validator = JsonSchemaRecordValidator()

    assert validator.validate({"anything": [1, 2, 3]}, {}) == []


def test_errors_name_the_offending_location() -> None:
    validator = JsonSchemaRecordValidator()

    errors = validator.validate({"iso_code": "FRA", "population": -1}, COUNTRY_SCHEMA)

    assert len(errors) == 2
    assert errors[0].startswith("iso_code: ")
    assert errors[1].startswith("population: ")


def test_root_errors_fall_back_to_entity() -> None:
    validator = JsonSchemaRecordValidator()

    errors = validator.validate({"population": 1}, COUNTRY_SCHEMA)

    assert errors == ["entity: 'iso_code' is a required property"]


def test_invalid_schema_is_an_internal_error() -> None:
    validator = JsonSchemaRecordValidator()

    with pytest.raises(InternalError):
        validator.validate({}, {"type": "no-such-type"})
