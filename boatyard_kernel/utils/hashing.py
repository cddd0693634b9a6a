"""
Canonical JSON and SHA-256 helpers.

Two things in the kernel are hashed: the frozen configuration inside a
snapshot (its ``content_hash``) and every audit entry (the chain link).
Both must produce the same digest for the same logical content on any
machine, so values are rendered through one canonical JSON form:

* keys sorted, no whitespace;
* ``Decimal`` in plain positional notation with trailing zeros removed,
  so ``Decimal("2400.00")`` and ``Decimal("2400")`` both render ``"2400"``;
* ``datetime``/``date`` as ISO 8601, ``UUID`` as its string, enums as
  their value.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

GENESIS_MARKER = "GENESIS"


def _canonical_decimal(value: Decimal) -> str:
    normalized = value.normalize()
    if normalized == 0:
        return "0"
    return format(normalized, "f")


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return _canonical_decimal(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: Any) -> str:
    """Deterministic JSON text for ``data``."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=_json_default)


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hash_payload(payload: Any) -> str:
    """SHA-256 (hex, 64 chars) of the canonical JSON form of ``payload``."""
    return sha256_hex(canonicalize_json(payload))


def hash_audit_entry(
    entity_type: str,
    entity_id: str,
    action: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """
    Chain link for one audit entry.

    Covers the entity, the action, the payload digest and the previous
    entry's hash; the first entry links to ``GENESIS_MARKER``.
    """
    link = "|".join(
        (entity_type, str(entity_id), action, payload_hash, prev_hash or GENESIS_MARKER)
    )
    return sha256_hex(link)
