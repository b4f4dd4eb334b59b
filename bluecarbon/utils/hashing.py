"""
Hashing utilities for the audit trail and ledger reference tokens.
"""

import hashlib
import json
import uuid
from typing import Any, Dict


def hash_payload(payload: Dict[str, Any]) -> str:
    """
    Generate SHA-256 hash of a payload for audit trail.

    Args:
        payload: Dictionary to hash

    Returns:
        Hexadecimal SHA-256 hash string
    """
    # Sort keys for consistent hashing
    payload_str = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha256(payload_str.encode()).hexdigest()


def ledger_hash(payload: Dict[str, Any]) -> str:
    """
    Opaque external reference token for a ledger record.

    A salted content hash rendered as a 0x-prefixed hex string. It is not
    anchored on any chain; it only lets auditors match records across systems.
    """
    salted = dict(payload, nonce=uuid.uuid4().hex)
    return f"0x{hash_payload(salted)}"
