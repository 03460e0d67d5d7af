"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class SessionMode(StrEnum):
    """Commit behaviour of a contribution session."""

    STREAM = "stream"
    ACCRUE = "accrue"
    REPLACE = "replace"


class ActionKind(StrEnum):
    """Mutation verbs a connector may submit within a session."""

    UPSERT = "upsert"
    DELETE = "delete"
