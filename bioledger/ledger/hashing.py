"""
Display fingerprints for ledger records.
"""

import hashlib

FINGERPRINT_LENGTH = 16


def fingerprint(raw_ref: str) -> str:
    """
    Deterministic display fingerprint of a record's raw reference.

    Args:
        raw_ref: The record's dedup key

    Returns:
        First 16 hex digits of the SHA-256 digest
    """
    return hashlib.sha256(raw_ref.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]
