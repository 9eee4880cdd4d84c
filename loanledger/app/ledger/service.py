"""Outbound API of the ledger client.

Every submit/query returns a structured result; a ledger outage degrades the
caller's workflow instead of raising into it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Union

import httpx

from loanledger.app.audit.aggregator import AuditAggregator
from loanledger.app.audit.document import AuditMode, PublishedAudit
from loanledger.app.audit.snapshot import LocalSnapshot
from loanledger.app.config.settings import Settings, get_settings
from loanledger.app.ledger.context import LedgerContext
from loanledger.app.ledger.records import (
    ChatTurn,
    CreditScore,
    Disbursement,
    DocumentVerification,
    EmiPayment,
    LoanApplication,
    QueryResult,
    SubmitResult,
)
from loanledger.app.ledger.retry import Sleeper
from loanledger.app.observability import configure_logging, hash_subject, structured_log

logger = logging.getLogger(__name__)


class LedgerService:
    def __init__(self, context: LedgerContext, *, aggregator: Optional[AuditAggregator] = None) -> None:
        self.context = context
        self.aggregator = aggregator or AuditAggregator.from_context(context)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> "LedgerService":
        settings = settings or get_settings()
        configure_logging(settings.log_level)
        context = LedgerContext.from_settings(settings, client=client, sleep=sleep)
        return cls(context, aggregator=AuditAggregator.from_context(context, client=client, sleep=sleep))

    async def initialize(self) -> bool:
        return await self.context.initialize()

    async def aclose(self) -> None:
        await self.context.aclose()

    async def __aenter__(self) -> "LedgerService":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _log_submit(self, operation: str, subject_id: str, result: SubmitResult) -> SubmitResult:
        structured_log(
            {
                "type": "ledger_submit",
                "operation": operation,
                "subject": hash_subject(subject_id),
                "accepted": result.accepted,
                "failure": result.failure.value if result.failure else None,
                "tx_hash": result.transaction_hash,
            },
            level=logging.INFO if result.accepted else logging.WARNING,
        )
        return result

    # -- writes -------------------------------------------------------------

    async def submit_loan_application(self, application: LoanApplication) -> SubmitResult:
        result = await self.context.loans.log_application(application)
        return self._log_submit("loan_application", application.user_id, result)

    async def submit_chat_turn(self, turn: ChatTurn) -> SubmitResult:
        result = await self.context.loans.log_chat_turn(turn)
        return self._log_submit("chat_turn", turn.user_id, result)

    async def submit_document_verification(self, document: DocumentVerification) -> SubmitResult:
        result = await self.context.loans.log_document(document)
        return self._log_submit("document_verification", document.user_id, result)

    async def submit_credit_score(self, credit: CreditScore) -> SubmitResult:
        result = await self.context.credit.record_credit_score(credit)
        return self._log_submit("credit_score", credit.user_id, result)

    async def submit_disbursement(self, disbursement: Disbursement) -> SubmitResult:
        result = await self.context.payments.record_disbursement(disbursement)
        return self._log_submit("disbursement", disbursement.user_id, result)

    async def submit_emi_payment(self, payment: EmiPayment) -> SubmitResult:
        result = await self.context.payments.record_emi_payment(payment)
        return self._log_submit("emi_payment", payment.user_id, result)

    # -- reads --------------------------------------------------------------

    async def query_loans(self, user_id: str) -> QueryResult:
        return await self.context.loans.query_loans(user_id)

    async def query_chat_logs(self, user_id: str) -> QueryResult:
        return await self.context.loans.query_chat_logs(user_id)

    async def query_documents(self, user_id: str) -> QueryResult:
        return await self.context.loans.query_documents(user_id)

    async def query_credit_history(self, user_id: str) -> QueryResult:
        return await self.context.credit.query_credit_history(user_id)

    async def latest_credit_score(self, user_id: str) -> QueryResult:
        return await self.context.credit.latest_credit_score(user_id)

    async def query_disbursements(self, user_id: str) -> QueryResult:
        return await self.context.payments.query_disbursements(user_id)

    async def query_emis(self, user_id: str) -> QueryResult:
        return await self.context.payments.query_emis(user_id)

    async def master_ledger(self, user_id: str) -> QueryResult:
        return await self.context.loans.master_ledger(user_id)

    # -- audit --------------------------------------------------------------

    async def build_audit_document(
        self,
        subject_id: str,
        mode: Union[AuditMode, str] = AuditMode.ON_CHAIN,
        snapshot: Optional[LocalSnapshot] = None,
    ) -> PublishedAudit:
        return await self.aggregator.build_audit_document(subject_id, mode, snapshot)


__all__ = ["LedgerService"]
