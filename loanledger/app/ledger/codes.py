"""Order-significant enumerations shared by the encoder and the decoder.

The on-chain value of a member is its position in the definition order, so the
order of members below is part of the contract ABI: append, never reorder.
``UNKNOWN`` is never encoded; it is what decoding yields for a code this
release does not know.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Union

from loanledger.app.ledger.errors import EncodingError


class LedgerEnum(str, Enum):
    @classmethod
    def known(cls) -> List["LedgerEnum"]:
        return [member for member in cls if member.name != "UNKNOWN"]

    @property
    def code(self) -> int:
        if self.name == "UNKNOWN":
            raise EncodingError(f"{type(self).__name__}.UNKNOWN has no on-chain code")
        return type(self).known().index(self)

    @classmethod
    def from_label(cls, label: Union[str, "LedgerEnum"]) -> "LedgerEnum":
        if isinstance(label, cls):
            member = label
        else:
            text = str(label or "").strip().lower()
            matches = [m for m in cls.known() if m.value.lower() == text]
            if not matches:
                raise EncodingError(f"unrecognized {cls.__name__} label: {label!r}")
            member = matches[0]
        if member.name == "UNKNOWN":
            raise EncodingError(f"{cls.__name__}.UNKNOWN cannot be written to the ledger")
        return member

    @classmethod
    def from_code(cls, code: int) -> "LedgerEnum":
        members = cls.known()
        try:
            index = int(code)
        except (TypeError, ValueError):
            return cls["UNKNOWN"]
        if 0 <= index < len(members):
            return members[index]
        return cls["UNKNOWN"]

    @classmethod
    def encode(cls, label: Union[str, "LedgerEnum"]) -> int:
        return cls.from_label(label).code

    @classmethod
    def decode(cls, code: int) -> str:
        return cls.from_code(code).value


class LoanStatus(LedgerEnum):
    PENDING = "pending"
    OFFERED = "offered"
    NEGOTIATING = "negotiating"
    ACCEPTED = "accepted"
    APPROVED = "approved"
    REJECTED = "rejected"
    DISBURSED = "disbursed"
    UNKNOWN = "unknown"


class ChatState(LedgerEnum):
    INTRO = "intro"
    OFFERED = "offered"
    NEGOTIATING = "negotiating"
    ACCEPTED = "accepted"
    UNKNOWN = "unknown"


class DocumentType(LedgerEnum):
    AADHAAR = "aadhaar"
    PAN = "pan"
    BANK_STATEMENT = "bankStatement"
    SALARY_SLIP = "salarySlip"
    UNKNOWN = "unknown"


class CreditGrade(LedgerEnum):
    A_PLUS = "A+"
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    UNKNOWN = "Unknown"


class PaymentStatus(LedgerEnum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    FAILED = "failed"
    UNKNOWN = "unknown"


def grade_for_score(score: int) -> CreditGrade:
    if score >= 750:
        return CreditGrade.A_PLUS
    if score >= 700:
        return CreditGrade.A
    if score >= 650:
        return CreditGrade.B
    if score >= 550:
        return CreditGrade.C
    return CreditGrade.D


ALL_TABLES = (LoanStatus, ChatState, DocumentType, CreditGrade, PaymentStatus)


__all__ = [
    "LedgerEnum",
    "LoanStatus",
    "ChatState",
    "DocumentType",
    "CreditGrade",
    "PaymentStatus",
    "grade_for_score",
    "ALL_TABLES",
]
