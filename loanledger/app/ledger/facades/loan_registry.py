from __future__ import annotations

from typing import Any, List

from loanledger.app.ledger.codes import ChatState, DocumentType, LoanStatus
from loanledger.app.ledger.facades.base import ContractFacade, digest
from loanledger.app.ledger.hashing import hash_identifier, hash_json
from loanledger.app.ledger.records import (
    ChatLogRecord,
    ChatTurn,
    DocumentRecord,
    DocumentVerification,
    LoanApplication,
    LoanRecord,
    QueryResult,
    SubmitResult,
)
from loanledger.app.ledger.units import rate_to_bps, to_base_units


def _loans(raw: Any) -> List[LoanRecord]:
    return [LoanRecord.from_chain(item) for item in raw]


def _chat_logs(raw: Any) -> List[ChatLogRecord]:
    return [ChatLogRecord.from_chain(item) for item in raw]


def _documents(raw: Any) -> List[DocumentRecord]:
    return [DocumentRecord.from_chain(item) for item in raw]


class LoanRegistryFacade(ContractFacade):
    """Loan applications, negotiation chat turns and verified documents (LoanCore)."""

    contract_name = "LoanCore"

    async def log_application(self, application: LoanApplication) -> SubmitResult:
        loan_id = hash_identifier(application.application_id)
        user_id = hash_identifier(application.user_id)

        def build_args():
            metadata_hash = hash_json(
                {
                    "applicationId": application.application_id,
                    "customerName": application.customer_name,
                    "documentHash": application.document_hash,
                }
            )
            return (
                loan_id,
                user_id,
                to_base_units(application.loan_amount),
                rate_to_bps(application.interest_rate),
                application.approval_score,
                metadata_hash,
                LoanStatus.encode(application.status),
            )

        return await self._write(
            "createLoan",
            build_args,
            hashes={"loanIdHash": loan_id, "userIdHash": user_id},
        )

    async def log_chat_turn(self, turn: ChatTurn) -> SubmitResult:
        session_id = hash_identifier(turn.session_id)

        def build_args():
            return (
                session_id,
                hash_identifier(turn.user_id),
                hash_identifier(turn.message),
                ChatState.encode(turn.state),
                turn.negotiation_count,
                rate_to_bps(turn.final_rate),
            )

        return await self._write("logChat", build_args, hashes={"sessionIdHash": session_id})

    async def log_document(self, document: DocumentVerification) -> SubmitResult:
        doc_id = hash_identifier(document.document_id)

        def build_args():
            return (
                doc_id,
                hash_identifier(document.user_id),
                DocumentType.encode(document.document_type),
                document.verified,
                hash_json(document.extracted_data),
                digest(document.ipfs_hash),
            )

        return await self._write("logDocument", build_args, hashes={"docIdHash": doc_id})

    async def query_loans(self, user_id: str) -> QueryResult:
        return await self._query("getLoans", (hash_identifier(user_id),), _loans)

    async def query_chat_logs(self, user_id: str) -> QueryResult:
        return await self._query("getChatLogs", (hash_identifier(user_id),), _chat_logs)

    async def query_documents(self, user_id: str) -> QueryResult:
        return await self._query("getDocuments", (hash_identifier(user_id),), _documents)

    async def master_ledger(self, user_id: str) -> QueryResult:
        """Every record id the registry holds for the subject, in write order."""
        return await self._query("getMasterLedger", (hash_identifier(user_id),), list)


__all__ = ["LoanRegistryFacade"]
