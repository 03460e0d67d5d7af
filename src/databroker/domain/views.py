"""Consumer-facing representations of catalog records."""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from databroker.domain.model import CatalogRecord


def _remove_path(document: dict[str, Any], path: Sequence[str]) -> None:
    node: Any = document
    for segment in path[:-1]:
        if not isinstance(node, dict) or segment not in node:
            return
        node = node[segment]
    if isinstance(node, dict):
        node.pop(path[-1], None)


def apply_masks(entity_type: str | None, entity: dict[str, Any], masks: Iterable[str]) -> dict[str, Any]:
    """Drop every ``<type>.<path>`` masked field of ``entity_type`` from a copy of ``entity``."""

    masked = copy.deepcopy(entity)
    for mask in masks:
        owner, _, path = mask.partition(".")
        if owner == entity_type and path:
            _remove_path(masked, path.split("."))
    return masked


def instance(record: CatalogRecord, masks: Iterable[str] = (), *, full: bool = True) -> dict[str, Any]:
    doc: dict[str, Any] = {
        "id": record.public_id,
        "type": record.entity_type,
        "name": record.name,
    }
    if full:
        document = record.document
        doc["entity"] = apply_masks(record.entity_type, dict(document.get("entity") or {}), masks)
        doc["instance"] = dict(document.get("instance") or {})
        doc["timeseries"] = dict(document.get("timeseries") or {})
    return doc


def instances(records: Iterable[CatalogRecord], masks: Iterable[str] = ()) -> list[dict[str, Any]]:
    mask_list = tuple(masks)
    return [instance(record, mask_list, full=False) for record in records]
