"""Locally known state handed to the aggregator in hybrid mode.

Each category holds the domain records this process already submitted; the
matching ``tx_hashes`` entry lists the write-path transaction hashes in the
same order. A missing hash is published as ``"pending"``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, Field

from loanledger.app.ledger.codes import (
    ChatState,
    CreditGrade,
    DocumentType,
    LedgerEnum,
    LoanStatus,
    PaymentStatus,
    grade_for_score,
)
from loanledger.app.ledger.errors import EncodingError
from loanledger.app.ledger.facades.base import digest
from loanledger.app.ledger.hashing import hash_identifier, hash_json
from loanledger.app.ledger.records import (
    ChatLogRecord,
    ChatTurn,
    CreditRecord,
    CreditScore,
    Disbursement,
    DisbursementRecord,
    DocumentRecord,
    DocumentVerification,
    EmiPayment,
    LoanApplication,
    LoanRecord,
    PaymentRecord,
)
from loanledger.app.ledger.units import bps_to_rate, from_base_units, rate_to_bps, to_base_units

PENDING_TX = "pending"

E = TypeVar("E", bound=LedgerEnum)


class LocalSnapshot(BaseModel):
    loans: List[LoanApplication] = Field(default_factory=list)
    chat_turns: List[ChatTurn] = Field(default_factory=list)
    documents: List[DocumentVerification] = Field(default_factory=list)
    credit_scores: List[CreditScore] = Field(default_factory=list)
    disbursements: List[Disbursement] = Field(default_factory=list)
    emi_payments: List[EmiPayment] = Field(default_factory=list)
    customer: Dict[str, Any] = Field(default_factory=dict)
    tx_hashes: Dict[str, List[Optional[str]]] = Field(default_factory=dict)

    def tx_hash(self, category: str, index: int) -> str:
        hashes = self.tx_hashes.get(category) or []
        if index < len(hashes) and hashes[index]:
            return str(hashes[index])
        return PENDING_TX


def _label(table: Type[E], value: Optional[str]) -> str:
    try:
        return table.from_label(value or "").value
    except EncodingError:
        return table["UNKNOWN"].value


def _amount(value: Any) -> str:
    return from_base_units(to_base_units(value))


def _rate(value: Any) -> str:
    return bps_to_rate(rate_to_bps(value))


def snapshot_records(snapshot: LocalSnapshot, *, timestamp: str) -> Dict[str, List[Any]]:
    """Normalize snapshot entries into the same record shapes the chain decoder yields."""
    loans = [
        LoanRecord(
            loan_id_hash=hash_identifier(app.application_id),
            user_id_hash=hash_identifier(app.user_id),
            amount=_amount(app.loan_amount),
            interest_rate=_rate(app.interest_rate),
            score=app.approval_score,
            status=_label(LoanStatus, app.status),
            metadata_hash=hash_json(
                {
                    "applicationId": app.application_id,
                    "customerName": app.customer_name,
                    "documentHash": app.document_hash,
                }
            ),
            timestamp=timestamp,
            tx_hash=snapshot.tx_hash("loans", i),
        )
        for i, app in enumerate(snapshot.loans)
    ]
    chat_logs = [
        ChatLogRecord(
            session_id_hash=hash_identifier(turn.session_id),
            user_id_hash=hash_identifier(turn.user_id),
            message_hash=hash_identifier(turn.message),
            state=_label(ChatState, turn.state),
            negotiation_count=turn.negotiation_count,
            final_rate=_rate(turn.final_rate),
            timestamp=timestamp,
            tx_hash=snapshot.tx_hash("chatLogs", i),
        )
        for i, turn in enumerate(snapshot.chat_turns)
    ]
    documents = [
        DocumentRecord(
            doc_id_hash=hash_identifier(doc.document_id),
            user_id_hash=hash_identifier(doc.user_id),
            document_type=_label(DocumentType, doc.document_type),
            verified=doc.verified,
            data_hash=hash_json(doc.extracted_data),
            ipfs_hash=digest(doc.ipfs_hash),
            timestamp=timestamp,
            tx_hash=snapshot.tx_hash("documents", i),
        )
        for i, doc in enumerate(snapshot.documents)
    ]
    credit = [
        CreditRecord(
            user_id_hash=hash_identifier(score.user_id),
            score=score.score,
            grade=_label(CreditGrade, score.grade) if score.grade else grade_for_score(score.score).value,
            limit=_amount(score.pre_approved_limit),
            proof_hash=None,
            timestamp=timestamp,
            tx_hash=snapshot.tx_hash("creditHistory", i),
        )
        for i, score in enumerate(snapshot.credit_scores)
    ]
    disbursements = [
        DisbursementRecord(
            loan_id_hash=hash_identifier(d.loan_id),
            user_id_hash=hash_identifier(d.user_id),
            amount=_amount(d.amount),
            account_hash=hash_identifier(d.recipient_account),
            reference_hash=hash_identifier(d.transaction_id),
            timestamp=timestamp,
            tx_hash=snapshot.tx_hash("disbursements", i),
        )
        for i, d in enumerate(snapshot.disbursements)
    ]
    emis = [
        PaymentRecord(
            loan_id_hash=hash_identifier(p.loan_id),
            user_id_hash=hash_identifier(p.user_id),
            emi_number=p.emi_number,
            amount=_amount(p.amount),
            principal_paid=_amount(p.principal_paid),
            interest_paid=_amount(p.interest_paid),
            status=_label(PaymentStatus, p.status),
            receipt_hash=digest(p.receipt_hash),
            timestamp=timestamp,
            tx_hash=snapshot.tx_hash("emis", i),
        )
        for i, p in enumerate(snapshot.emi_payments)
    ]
    return {
        "loans": loans,
        "chatLogs": chat_logs,
        "documents": documents,
        "creditHistory": credit,
        "disbursements": disbursements,
        "emis": emis,
    }


__all__ = ["LocalSnapshot", "PENDING_TX", "snapshot_records"]
