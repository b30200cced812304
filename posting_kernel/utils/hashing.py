"""
Deterministic hashing utilities.

Audit records and journal fingerprints are hashed from a canonical JSON
form so the same content always yields the same digest.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

GENESIS_HASH = "GENESIS"


def _json_serializer(obj: Any) -> Any:
    """Serialize Decimal, date/datetime, UUID and bytes for canonical JSON."""
    if isinstance(obj, Decimal):
        # 100.00 and 100 must hash identically
        return format(obj.normalize(), "f")
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, bytes):
        return obj.hex()

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: dict | list | Any) -> str:
    """
    Convert data to canonical JSON string.

    Keys are sorted, whitespace is dropped, and special types are
    rendered through ``_json_serializer``.
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def hash_payload(payload: dict) -> str:
    """Return the hex SHA-256 of the canonical form of ``payload``."""
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def hash_audit_event(
    entity_type: str,
    entity_id: str,
    action: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """
    Compute the chained hash for an audit event.

    Args:
        entity_type: Type of entity being audited.
        entity_id: ID of the entity.
        action: Action being recorded.
        payload_hash: Hash of the event payload.
        prev_hash: Hash of the previous audit event (None for the first one).

    Returns:
        Hex-encoded SHA-256 hash.
    """
    components = [
        entity_type,
        str(entity_id),
        action,
        payload_hash,
        prev_hash or GENESIS_HASH,
    ]
    data = "|".join(components)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def hash_journal_lines(journal_number: str, lines: list[dict]) -> str:
    """
    Fingerprint a journal's line set.

    Lines are ordered by ``line_number`` before hashing so the digest does
    not depend on load order.
    """
    sorted_lines = sorted(lines, key=lambda x: x.get("line_number", 0))
    return hash_payload({"journal_number": journal_number, "lines": sorted_lines})
