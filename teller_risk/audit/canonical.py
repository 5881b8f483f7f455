"""Canonical JSON for audit entries.

The digest of an entry must survive a round trip through the store, so the
canonical form is fixed: sorted keys, no whitespace, UTF-8, and only JSON
types that Postgres JSONB gives back unchanged. Decimals, datetimes, UUIDs
and floats are rendered as strings.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


def _normalize(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, Enum):
        return _normalize(value.value)
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, dict):
        return {str(key): _normalize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(item) for item in value]
    raise TypeError(f"Type {type(value).__name__} is not allowed in an audit payload")


def normalize_payload(payload: dict[str, Any] | None) -> dict[str, Any]:
    """Reduce a payload to the JSON types that round-trip exactly."""
    return _normalize(payload or {})


def canonical_json(document: dict[str, Any]) -> str:
    return json.dumps(
        _normalize(document),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def entry_document(
    entity_type: str,
    entity_id: str,
    action: str,
    actor_id: str,
    actor_role: str,
    payload: dict[str, Any],
) -> dict[str, Any]:
    """The fields an entry's digest covers."""
    return {
        "entity_type": entity_type,
        "entity_id": entity_id,
        "action": action,
        "actor_id": actor_id,
        "actor_role": actor_role,
        "payload": payload,
    }
