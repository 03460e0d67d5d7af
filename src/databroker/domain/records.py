"""Contributed record shapes and all-or-nothing batch validation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from databroker.domain.errors import BadRequestError, ErrorDetail
from databroker.domain.model import ActionKind, Delete, Upsert

if TYPE_CHECKING:
    from collections.abc import Sequence

    from databroker.domain.model import Action, Entity
    from databroker.domain.ports.collaborators import RecordValidator

MAX_VENDOR_ID_LENGTH = 255


def _require_text(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value


class RecordModel(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)


class UpsertRecord(RecordModel):
    id: str = Field(min_length=1, max_length=MAX_VENDOR_ID_LENGTH)
    name: str = Field(min_length=1, max_length=255)
    entity: dict[str, Any]
    instance: dict[str, Any] = Field(default_factory=dict[str, Any])

    _check_id = field_validator("id")(_require_text)
    _check_name = field_validator("name")(_require_text)


class DeleteRecord(RecordModel):
    id: str = Field(min_length=1, max_length=MAX_VENDOR_ID_LENGTH)

    _check_id = field_validator("id")(_require_text)


def parse_action_kind(value: str | ActionKind) -> ActionKind:
    try:
        return ActionKind(str(value).lower())
    except ValueError:
        raise BadRequestError(
            details=[ErrorDetail(name="action", reason="not recognised")]
        ) from None


def _model_errors(error: ValidationError, index: int) -> list[ErrorDetail]:
    details: list[ErrorDetail] = []
    for item in error.errors():
        name = ".".join(str(part) for part in item["loc"]) or "record"
        details.append(ErrorDetail(name=name, reason=item["msg"], index=index))
    return details


def build_actions(
    kind: ActionKind,
    records: object,
    entity: Entity,
    validator: RecordValidator,
) -> list[Action]:
    """Validate a whole batch, returning its actions or raising with every failure."""

    if not isinstance(records, list):
        raise BadRequestError(details=[ErrorDetail(name="records", reason="must be an array")])
    batch: Sequence[object] = records

    actions: list[Action] = []
    errors: list[ErrorDetail] = []
    for index, record in enumerate(batch):
        if kind is ActionKind.DELETE:
            candidate = {"id": record} if isinstance(record, str) else record
            try:
                parsed_delete = DeleteRecord.model_validate(candidate)
            except ValidationError as exc:
                errors.extend(_model_errors(exc, index))
                continue
            actions.append(Delete(vendor_id=parsed_delete.id))
            continue

        try:
            parsed = UpsertRecord.model_validate(record)
        except ValidationError as exc:
            errors.extend(_model_errors(exc, index))
            continue
        schema_errors = validator.validate(parsed.entity, entity.schema)
        if schema_errors:
            errors.extend(
                ErrorDetail(name="entity", reason=reason, index=index) for reason in schema_errors
            )
            continue
        document = {
            "name": parsed.name,
            "entity": parsed.entity,
            "instance": parsed.instance,
            "timeseries": dict(entity.timeseries),
        }
        actions.append(Upsert(vendor_id=parsed.id, document=document))

    if errors:
        raise BadRequestError(details=errors)
    return actions
