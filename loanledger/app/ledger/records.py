from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from loanledger.app.ledger.codes import ChatState, CreditGrade, DocumentType, LoanStatus, PaymentStatus
from loanledger.app.ledger.errors import FailureType
from loanledger.app.ledger.units import bps_to_rate, chain_timestamp_to_iso, from_base_units


# ----------------------------------------------------------------------------
# Domain inputs (write path)
# ----------------------------------------------------------------------------

class LoanApplication(BaseModel):
    application_id: str
    user_id: str
    loan_amount: Decimal
    interest_rate: Decimal
    approval_score: int = 0
    status: str = LoanStatus.PENDING.value
    customer_name: Optional[str] = None
    document_hash: Optional[str] = None


class ChatTurn(BaseModel):
    session_id: str
    user_id: str
    message: str
    state: str = ChatState.INTRO.value
    negotiation_count: int = Field(0, ge=0)
    final_rate: Decimal = Decimal("0")


class DocumentVerification(BaseModel):
    document_id: str
    user_id: str
    document_type: str
    verified: bool
    extracted_data: Dict[str, Any] = Field(default_factory=dict)
    ipfs_hash: Optional[str] = None


class CreditScore(BaseModel):
    user_id: str
    score: int = Field(ge=0)
    grade: Optional[str] = None
    pre_approved_limit: Decimal = Decimal("0")


class Disbursement(BaseModel):
    loan_id: str
    user_id: str
    amount: Decimal
    recipient_account: str
    transaction_id: str


class EmiPayment(BaseModel):
    loan_id: str
    user_id: str
    emi_number: int = Field(ge=1)
    amount: Decimal
    principal_paid: Decimal = Decimal("0")
    interest_paid: Decimal = Decimal("0")
    status: str = PaymentStatus.PENDING.value
    receipt_hash: Optional[str] = None


# ----------------------------------------------------------------------------
# Decoded ledger records (read path); immutable once accepted on chain
# ----------------------------------------------------------------------------

def _with_tx(payload: Dict[str, Any], tx_hash: Optional[str]) -> Dict[str, Any]:
    if tx_hash:
        payload["txHash"] = tx_hash
    return payload


@dataclass(frozen=True)
class LoanRecord:
    loan_id_hash: str
    user_id_hash: str
    amount: str
    interest_rate: str
    score: int
    status: str
    metadata_hash: str
    timestamp: str
    tx_hash: Optional[str] = None

    @classmethod
    def from_chain(cls, raw: Dict[str, Any]) -> "LoanRecord":
        return cls(
            loan_id_hash=raw["loanId"],
            user_id_hash=raw["userId"],
            amount=from_base_units(raw["amount"]),
            interest_rate=bps_to_rate(raw["interestBps"]),
            score=int(raw["score"]),
            status=LoanStatus.decode(raw["status"]),
            metadata_hash=raw["metadataHash"],
            timestamp=chain_timestamp_to_iso(raw["timestamp"]),
        )

    def as_dict(self) -> Dict[str, Any]:
        return _with_tx(
            {
                "loanIdHash": self.loan_id_hash,
                "amount": self.amount,
                "interestRate": f"{self.interest_rate}%",
                "score": self.score,
                "status": self.status,
                "timestamp": self.timestamp,
            },
            self.tx_hash,
        )


@dataclass(frozen=True)
class ChatLogRecord:
    session_id_hash: str
    user_id_hash: str
    message_hash: Optional[str]
    state: str
    negotiation_count: int
    final_rate: str
    timestamp: str
    tx_hash: Optional[str] = None

    @classmethod
    def from_chain(cls, raw: Dict[str, Any]) -> "ChatLogRecord":
        return cls(
            session_id_hash=raw["sessionId"],
            user_id_hash=raw["userId"],
            message_hash=raw["messageHash"],
            state=ChatState.decode(raw["state"]),
            negotiation_count=int(raw["negotiationCount"]),
            final_rate=bps_to_rate(raw["finalRateBps"]),
            timestamp=chain_timestamp_to_iso(raw["timestamp"]),
        )

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"sessionIdHash": self.session_id_hash}
        if self.message_hash:
            payload["messageHash"] = self.message_hash
        payload.update(
            {
                "state": self.state,
                "negotiationCount": self.negotiation_count,
                "finalRate": f"{self.final_rate}%",
                "timestamp": self.timestamp,
            }
        )
        return _with_tx(payload, self.tx_hash)


@dataclass(frozen=True)
class DocumentRecord:
    doc_id_hash: str
    user_id_hash: str
    document_type: str
    verified: bool
    data_hash: str
    ipfs_hash: str
    timestamp: str
    tx_hash: Optional[str] = None

    @classmethod
    def from_chain(cls, raw: Dict[str, Any]) -> "DocumentRecord":
        return cls(
            doc_id_hash=raw["docId"],
            user_id_hash=raw["userId"],
            document_type=DocumentType.decode(raw["docType"]),
            verified=bool(raw["verified"]),
            data_hash=raw["dataHash"],
            ipfs_hash=raw["ipfsHash"],
            timestamp=chain_timestamp_to_iso(raw["timestamp"]),
        )

    def as_dict(self) -> Dict[str, Any]:
        return _with_tx(
            {
                "docIdHash": self.doc_id_hash,
                "documentType": self.document_type,
                "verified": self.verified,
                "dataHash": self.data_hash,
                "ipfsHash": self.ipfs_hash,
                "timestamp": self.timestamp,
            },
            self.tx_hash,
        )


@dataclass(frozen=True)
class CreditRecord:
    user_id_hash: str
    score: int
    grade: str
    limit: str
    proof_hash: Optional[str]
    timestamp: str
    tx_hash: Optional[str] = None

    @classmethod
    def from_chain(cls, raw: Dict[str, Any]) -> "CreditRecord":
        return cls(
            user_id_hash=raw["userId"],
            score=int(raw["score"]),
            grade=CreditGrade.decode(raw["grade"]),
            limit=from_base_units(raw["limit"]),
            proof_hash=raw["proofHash"],
            timestamp=chain_timestamp_to_iso(raw["timestamp"]),
        )

    def as_dict(self) -> Dict[str, Any]:
        return _with_tx(
            {"score": self.score, "grade": self.grade, "limit": self.limit, "timestamp": self.timestamp},
            self.tx_hash,
        )


@dataclass(frozen=True)
class DisbursementRecord:
    loan_id_hash: str
    user_id_hash: str
    amount: str
    account_hash: str
    reference_hash: str
    timestamp: str
    tx_hash: Optional[str] = None

    @classmethod
    def from_chain(cls, raw: Dict[str, Any]) -> "DisbursementRecord":
        return cls(
            loan_id_hash=raw["loanId"],
            user_id_hash=raw["userId"],
            amount=from_base_units(raw["amount"]),
            account_hash=raw["accountHash"],
            reference_hash=raw["txHash"],
            timestamp=chain_timestamp_to_iso(raw["timestamp"]),
        )

    def as_dict(self) -> Dict[str, Any]:
        return _with_tx(
            {
                "loanIdHash": self.loan_id_hash,
                "amount": self.amount,
                "accountHash": self.account_hash,
                "referenceHash": self.reference_hash,
                "timestamp": self.timestamp,
            },
            self.tx_hash,
        )


@dataclass(frozen=True)
class PaymentRecord:
    loan_id_hash: str
    user_id_hash: str
    emi_number: int
    amount: str
    principal_paid: str
    interest_paid: str
    status: str
    receipt_hash: Optional[str]
    timestamp: str
    tx_hash: Optional[str] = None

    @classmethod
    def from_chain(cls, raw: Dict[str, Any]) -> "PaymentRecord":
        return cls(
            loan_id_hash=raw["loanId"],
            user_id_hash=raw["userId"],
            emi_number=int(raw["emiNo"]),
            amount=from_base_units(raw["amount"]),
            principal_paid=from_base_units(raw["principalPaid"]),
            interest_paid=from_base_units(raw["interestPaid"]),
            status=PaymentStatus.decode(raw["status"]),
            receipt_hash=raw["receiptHash"],
            timestamp=chain_timestamp_to_iso(raw["timestamp"]),
        )

    def as_dict(self) -> Dict[str, Any]:
        return _with_tx(
            {
                "loanIdHash": self.loan_id_hash,
                "emiNumber": self.emi_number,
                "amount": self.amount,
                "principalPaid": self.principal_paid,
                "interestPaid": self.interest_paid,
                "status": self.status,
                "timestamp": self.timestamp,
            },
            self.tx_hash,
        )


LedgerRecord = Union[LoanRecord, ChatLogRecord, DocumentRecord, CreditRecord, DisbursementRecord, PaymentRecord]


# ----------------------------------------------------------------------------
# Results returned across the public boundary
# ----------------------------------------------------------------------------

@dataclass(frozen=True)
class SubmitResult:
    accepted: bool
    transaction_hash: Optional[str] = None
    error: Optional[str] = None
    failure: Optional[FailureType] = None
    hashes: Dict[str, str] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"accepted": self.accepted}
        if self.transaction_hash:
            payload["transactionHash"] = self.transaction_hash
        if self.error:
            payload["error"] = self.error
        payload.update(self.hashes)
        return payload


@dataclass(frozen=True)
class QueryResult:
    available: bool
    records: List[Any] = field(default_factory=list)
    error: Optional[str] = None
    failure: Optional[FailureType] = None

    def as_dict(self) -> Dict[str, Any]:
        records = [r.as_dict() if hasattr(r, "as_dict") else r for r in self.records]
        payload: Dict[str, Any] = {"available": self.available, "records": records}
        if self.error:
            payload["error"] = self.error
        return payload


__all__ = [
    "LoanApplication",
    "ChatTurn",
    "DocumentVerification",
    "CreditScore",
    "Disbursement",
    "EmiPayment",
    "LoanRecord",
    "ChatLogRecord",
    "DocumentRecord",
    "CreditRecord",
    "DisbursementRecord",
    "PaymentRecord",
    "LedgerRecord",
    "SubmitResult",
    "QueryResult",
]
