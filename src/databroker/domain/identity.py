"""Deterministic opaque identifiers.

Both identifiers are pure functions of their inputs so a connector that is
deleted and registered again under the same slugs gets the same contribution id,
and its records keep their public ids.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import uuid


def _encode(*parts: str) -> bytes:
    # JSON array keeps ("a:b", "c") and ("a", "b:c") apart
    return json.dumps(list(parts), ensure_ascii=False, separators=(",", ":")).encode("utf-8")


class IdentityScheme:
    """Hashes slugs and vendor ids into opaque, one-way tokens."""

    def __init__(self, secret: str | bytes) -> None:
        if not secret:
            raise ValueError("identity secret must not be empty")
        self._secret = secret.encode("utf-8") if isinstance(secret, str) else secret

    def contribution_id(self, entity_slug: str, connector_slug: str) -> str:
        return hmac.new(
            self._secret, _encode(entity_slug, connector_slug), hashlib.sha256
        ).hexdigest()

    def public_id(self, connector_id: str, vendor_id: str) -> str:
        return hashlib.sha256(_encode(connector_id, vendor_id)).hexdigest()

    @staticmethod
    def session_id() -> str:
        return uuid.uuid4().hex
