"""Utility modules for the boatyard kernel."""

from boatyard_kernel.utils.hashing import (
    canonicalize_json,
    hash_audit_entry,
    hash_payload,
)

__all__ = [
    "hash_payload",
    "hash_audit_entry",
    "canonicalize_json",
]
