from __future__ import annotations

import re
from enum import Enum
from typing import Optional


class LedgerError(Exception):
    """Base class for every ledger-facing failure."""

    def __init__(self, message: str, *, endpoint: Optional[str] = None) -> None:
        super().__init__(message)
        self.endpoint = endpoint


class ConfigurationError(LedgerError):
    """Raised when schema, address or key material is missing or invalid at startup."""


class TransientNetworkError(LedgerError):
    """Raised for failures that may succeed on another attempt or endpoint."""


class RateLimitError(TransientNetworkError):
    """Raised when the gateway signals rate limiting (HTTP 429 or equivalent JSON-RPC code)."""


class RpcTimeoutError(TransientNetworkError):
    """Raised when a single JSON-RPC request times out."""


class SubmissionTimeoutError(TransientNetworkError):
    """Raised when no transaction hash arrives within the per-attempt window."""


class OrderingConflictError(LedgerError):
    """Raised for stale, duplicate or underpriced-replacement nonces."""


class LedgerRejectionError(LedgerError):
    """Raised when the contract reverts; never retried."""


class EncodingError(LedgerError):
    """Raised when a call cannot be encoded or a result cannot be decoded."""


class RpcResponseError(LedgerError):
    """Raised for JSON-RPC errors outside the other categories."""

    def __init__(self, message: str, *, code: Optional[int] = None, endpoint: Optional[str] = None) -> None:
        super().__init__(message, endpoint=endpoint)
        self.code = code


class FailureType(str, Enum):
    NOT_AVAILABLE = "NOT_AVAILABLE"
    CONFIGURATION = "CONFIGURATION"
    RATE_LIMITED = "RATE_LIMITED"
    TIMEOUT = "TIMEOUT"
    TRANSIENT = "TRANSIENT"
    ORDERING_CONFLICT = "ORDERING_CONFLICT"
    REJECTED = "REJECTED"
    ENCODING = "ENCODING"
    RPC_ERROR = "RPC_ERROR"


def failure_type_for(exc: LedgerError) -> FailureType:
    if isinstance(exc, ConfigurationError):
        return FailureType.CONFIGURATION
    if isinstance(exc, RateLimitError):
        return FailureType.RATE_LIMITED
    if isinstance(exc, (RpcTimeoutError, SubmissionTimeoutError)):
        return FailureType.TIMEOUT
    if isinstance(exc, TransientNetworkError):
        return FailureType.TRANSIENT
    if isinstance(exc, OrderingConflictError):
        return FailureType.ORDERING_CONFLICT
    if isinstance(exc, LedgerRejectionError):
        return FailureType.REJECTED
    if isinstance(exc, EncodingError):
        return FailureType.ENCODING
    return FailureType.RPC_ERROR


_RATE_LIMIT_CODES = {429, 100, -32005}
_RATE_LIMIT_MARKERS = ("rate limit", "too many requests", "request limit", "exceeded the quota")
_HTTP_429 = re.compile(r"\b429\b")
_ORDERING_MARKERS = (
    "nonce too low",
    "replacement transaction underpriced",
    "already known",
    "known transaction",
    "nonce too high",
)
_REVERT_MARKERS = ("execution reverted", "revert", "not admin", "unauthorized")


def classify_rpc_error(code: Optional[int], message: str, *, endpoint: Optional[str] = None) -> LedgerError:
    """Map a JSON-RPC error object onto the taxonomy."""
    text = (message or "").lower()
    if code in _RATE_LIMIT_CODES:
        return RateLimitError(message or "rate limited", endpoint=endpoint)
    if code == 3 or any(marker in text for marker in _REVERT_MARKERS):
        return LedgerRejectionError(message, endpoint=endpoint)
    if _HTTP_429.search(text) or any(marker in text for marker in _RATE_LIMIT_MARKERS):
        return RateLimitError(message or "rate limited", endpoint=endpoint)
    if any(marker in text for marker in _ORDERING_MARKERS):
        return OrderingConflictError(message, endpoint=endpoint)
    return RpcResponseError(message or "rpc error", code=code, endpoint=endpoint)


__all__ = [
    "LedgerError",
    "ConfigurationError",
    "TransientNetworkError",
    "RateLimitError",
    "RpcTimeoutError",
    "SubmissionTimeoutError",
    "OrderingConflictError",
    "LedgerRejectionError",
    "EncodingError",
    "RpcResponseError",
    "FailureType",
    "failure_type_for",
    "classify_rpc_error",
]
