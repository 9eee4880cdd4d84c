from __future__ import annotations

import hashlib
import json
import logging
import os
from typing import Any, Dict

logger = logging.getLogger(__name__)

_OBS_SALT = (os.getenv("OBS_HASH_SALT") or "ledger-obs-salt").encode("utf-8")

_REDACTED_KEYS = ("private_key", "raw_transaction", "cleartext", "subject_id", "payload", "jwt")


def hash_subject(subject_id: str | None) -> str:
    """Short salted fingerprint of a subject id, for correlating log lines only."""
    h = hashlib.sha256()
    h.update(_OBS_SALT)
    h.update((subject_id or "anon").encode("utf-8"))
    return h.hexdigest()[:16]


def safe_redact(event: Dict[str, Any]) -> Dict[str, Any]:
    redacted = dict(event) if isinstance(event, dict) else {}
    for key in _REDACTED_KEYS:
        if key in redacted:
            redacted.pop(key)
    return redacted


def structured_log(event: Dict[str, Any], level: int = logging.INFO) -> None:
    try:
        safe_event = safe_redact(event)
        logger.log(level, json.dumps(safe_event, separators=(",", ":"), default=str))
    except Exception:
        # logging must never break the ledger path
        return


def configure_logging(level: str | None) -> int:
    """Apply LOG_LEVEL to the package loggers; unknown names fall back to INFO."""
    resolved = logging.getLevelName((level or "INFO").strip().upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO
    logging.getLogger("loanledger").setLevel(resolved)
    return resolved


__all__ = ["configure_logging", "hash_subject", "structured_log", "safe_redact"]
