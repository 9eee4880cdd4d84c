from .errors import (
    ConfigurationError,
    EncodingError,
    FailureType,
    LedgerError,
    LedgerRejectionError,
    OrderingConflictError,
    RateLimitError,
    TransientNetworkError,
)
from .hashing import hash_identifier, hash_json
from .reader import UNAVAILABLE, is_unavailable
from .records import (
    ChatTurn,
    CreditScore,
    Disbursement,
    DocumentVerification,
    EmiPayment,
    LoanApplication,
    QueryResult,
    SubmitResult,
)

__all__ = [
    "ChatTurn",
    "ConfigurationError",
    "CreditScore",
    "Disbursement",
    "DocumentVerification",
    "EmiPayment",
    "EncodingError",
    "FailureType",
    "LedgerError",
    "LedgerRejectionError",
    "LoanApplication",
    "OrderingConflictError",
    "QueryResult",
    "RateLimitError",
    "SubmitResult",
    "TransientNetworkError",
    "UNAVAILABLE",
    "hash_identifier",
    "hash_json",
    "is_unavailable",
]
