"""One-way digests for identifiers that must not reach the ledger in cleartext.

Digests are keccak-256 to match what the contracts compute on-chain, rendered
as ``0x``-prefixed lowercase hex. The same digest is the cross-ledger lookup
key for a subject, so the encoding of the input must never change.
"""

from __future__ import annotations

import json
import re
from typing import Any, Optional, Union

from eth_utils import keccak

from loanledger.app.ledger.errors import EncodingError

HashedIdentifier = str

ZERO_HASH: HashedIdentifier = "0x" + "0" * 64

_HASH_PATTERN = re.compile(r"^0x[0-9a-f]{64}$")


def hash_identifier(value: Optional[Union[str, int]]) -> HashedIdentifier:
    """Digest a cleartext identifier (phone number, application id, session id...)."""
    if value is None or value == "":
        return ZERO_HASH
    return "0x" + keccak(text=str(value)).hex()


def hash_json(payload: Any) -> HashedIdentifier:
    """Digest a JSON-serializable payload in canonical form (sorted keys, no whitespace)."""
    try:
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    except (TypeError, ValueError) as exc:
        raise EncodingError(f"payload is not JSON-serializable: {exc}") from exc
    return hash_identifier(canonical)


def is_hashed_identifier(value: Any) -> bool:
    return isinstance(value, str) and bool(_HASH_PATTERN.match(value))


def to_bytes32(value: HashedIdentifier) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 32:
            raise EncodingError(f"expected 32 bytes, got {len(value)}")
        return bytes(value)
    if not is_hashed_identifier(value):
        raise EncodingError("malformed hashed identifier")
    return bytes.fromhex(value[2:])


def from_bytes32(value: bytes) -> HashedIdentifier:
    if len(value) != 32:
        raise EncodingError(f"expected 32 bytes, got {len(value)}")
    return "0x" + bytes(value).hex()


__all__ = [
    "HashedIdentifier",
    "ZERO_HASH",
    "hash_identifier",
    "hash_json",
    "is_hashed_identifier",
    "to_bytes32",
    "from_bytes32",
]
