from __future__ import annotations

from .logging import configure_logging, hash_subject, safe_redact, structured_log
from .metrics import counter, histogram

__all__ = [
    "configure_logging",
    "structured_log",
    "safe_redact",
    "hash_subject",
    "counter",
    "histogram",
]
