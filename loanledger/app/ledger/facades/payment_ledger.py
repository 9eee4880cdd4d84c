from __future__ import annotations

from typing import Any, List

from loanledger.app.ledger.codes import PaymentStatus
from loanledger.app.ledger.facades.base import ContractFacade, digest
from loanledger.app.ledger.hashing import hash_identifier
from loanledger.app.ledger.records import (
    Disbursement,
    DisbursementRecord,
    EmiPayment,
    PaymentRecord,
    QueryResult,
    SubmitResult,
)
from loanledger.app.ledger.units import to_base_units


def _disbursements(raw: Any) -> List[DisbursementRecord]:
    return [DisbursementRecord.from_chain(item) for item in raw]


def _emis(raw: Any) -> List[PaymentRecord]:
    return [PaymentRecord.from_chain(item) for item in raw]


class PaymentLedgerFacade(ContractFacade):
    """Disbursements and EMI repayments. Bank account numbers and references are hashed."""

    contract_name = "PaymentLedger"

    async def record_disbursement(self, disbursement: Disbursement) -> SubmitResult:
        loan_id = hash_identifier(disbursement.loan_id)

        def build_args():
            return (
                loan_id,
                hash_identifier(disbursement.user_id),
                to_base_units(disbursement.amount),
                hash_identifier(disbursement.recipient_account),
                hash_identifier(disbursement.transaction_id),
            )

        return await self._write("addDisbursement", build_args, hashes={"loanIdHash": loan_id})

    async def record_emi_payment(self, payment: EmiPayment) -> SubmitResult:
        loan_id = hash_identifier(payment.loan_id)

        def build_args():
            return (
                loan_id,
                hash_identifier(payment.user_id),
                payment.emi_number,
                to_base_units(payment.amount),
                to_base_units(payment.principal_paid),
                to_base_units(payment.interest_paid),
                PaymentStatus.encode(payment.status),
                digest(payment.receipt_hash),
            )

        return await self._write("payEMI", build_args, hashes={"loanIdHash": loan_id})

    async def query_disbursements(self, user_id: str) -> QueryResult:
        return await self._query("getUserDisbursements", (hash_identifier(user_id),), _disbursements)

    async def query_emis(self, user_id: str) -> QueryResult:
        return await self._query("getUserEMIs", (hash_identifier(user_id),), _emis)


__all__ = ["PaymentLedgerFacade"]
