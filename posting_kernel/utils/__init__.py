"""Utility functions for the posting kernel."""

from posting_kernel.utils.hashing import (
    canonicalize_json,
    hash_audit_event,
    hash_journal_lines,
    hash_payload,
)

__all__ = [
    "canonicalize_json",
    "hash_audit_event",
    "hash_journal_lines",
    "hash_payload",
]
