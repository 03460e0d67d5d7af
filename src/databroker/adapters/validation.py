"""JSON Schema validation of the ``entity`` section of contributed records."""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Any

from jsonschema import Draft202012Validator
from jsonschema import exceptions as jsonschema_exceptions

from databroker.domain.errors import InternalError
from databroker.domain.query import canonical_json

log = logging.getLogger(__name__)


@lru_cache(maxsize=128)
def _validator(schema_text: str) -> Draft202012Validator:
    schema = json.loads(schema_text)
    Draft202012Validator.check_schema(schema)
    return Draft202012Validator(schema)


def _location(error: jsonschema_exceptions.ValidationError) -> str:
    path = ".".join(str(part) for part in error.absolute_path)
    return path or "entity"


class JsonSchemaRecordValidator:
    """Draft 2020-12 validator; an empty schema accepts any object."""

    def validate(self, document: Any, schema: dict[str, Any]) -> list[str]:
        try:
            validator = _validator(canonical_json(schema))
        except jsonschema_exceptions.SchemaError as exc:
            log.error("Entity schema is invalid: %s", exc.message)
            raise InternalError("The entity schema is invalid") from exc
        errors = sorted(
            validator.iter_errors(document),
            key=lambda error: [str(part) for part in error.absolute_path],
        )
        return [f"{_location(error)}: {error.message}" for error in errors]
