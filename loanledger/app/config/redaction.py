from __future__ import annotations

import re

_PRIVATE_KEY_PATTERN = re.compile(r"\b(0x)?[0-9a-fA-F]{64}\b")
_JWT_PATTERN = re.compile(r"\beyJ[A-Za-z0-9_-]{8,}\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+")
_URL_KEY_PATTERN = re.compile(r"(/v3/)[A-Za-z0-9]{16,}")


def redact_secrets(s: str) -> str:
    if not s:
        return s
    redacted = _JWT_PATTERN.sub("[redacted]", s)
    redacted = re.sub(r"(Authorization:\s*Bearer\s+)[^\s]+", r"\1[redacted]", redacted, flags=re.IGNORECASE)
    redacted = _URL_KEY_PATTERN.sub(r"\1[redacted]", redacted)
    return redacted


def redact_key_material(s: str) -> str:
    """Strip anything shaped like a raw 32-byte key.

    Transaction hashes and hashed identifiers share that shape, so this is only
    applied to error text, never to values meant for the audit trail.
    """
    if not s:
        return s
    return _PRIVATE_KEY_PATTERN.sub("[redacted-hex]", redact_secrets(s))


def safe_error_detail(exc: Exception) -> str:
    text = str(exc) or exc.__class__.__name__
    text = redact_key_material(text)
    return text[:200]


__all__ = ["redact_secrets", "redact_key_material", "safe_error_detail"]
