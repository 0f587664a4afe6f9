"""
Canonical JSON serialization and SHA-256 fingerprints.

The same bytes are used for storage, document fingerprints and the signed
payload fingerprint, so issuer and verifier always hash identical input.
"""

import hashlib
import json
from datetime import datetime, timezone
from typing import Any


def canonicalize(obj: Any) -> bytes:
    """Serialize to sorted-key, whitespace-free UTF-8 JSON"""
    return json.dumps(
        obj, sort_keys=True, separators=(',', ':'), ensure_ascii=False
    ).encode('utf-8')


def digest(obj: Any) -> bytes:
    """Raw 32-byte SHA-256 digest of the canonical form"""
    return hashlib.sha256(canonicalize(obj)).digest()


def fingerprint(obj: Any) -> str:
    """Hex SHA-256 digest of the canonical form"""
    return digest(obj).hex()


def utc_now() -> str:
    """Current time as ISO-8601 UTC with a ``Z`` suffix"""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
