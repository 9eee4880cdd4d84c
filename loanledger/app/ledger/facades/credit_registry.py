from __future__ import annotations

from typing import Any, List

from loanledger.app.ledger.codes import CreditGrade, grade_for_score
from loanledger.app.ledger.facades.base import ContractFacade
from loanledger.app.ledger.hashing import ZERO_HASH, hash_identifier, hash_json
from loanledger.app.ledger.records import CreditRecord, CreditScore, QueryResult, SubmitResult
from loanledger.app.ledger.units import to_base_units


def _history(raw: Any) -> List[CreditRecord]:
    return [CreditRecord.from_chain(item) for item in raw]


def _latest(raw: Any) -> List[CreditRecord]:
    # the contract returns a zeroed struct when the subject has no entry
    if not raw or raw.get("userId") == ZERO_HASH:
        return []
    return [CreditRecord.from_chain(raw)]


class CreditRegistryFacade(ContractFacade):
    contract_name = "CreditRegistry"

    async def record_credit_score(self, credit: CreditScore) -> SubmitResult:
        user_id = hash_identifier(credit.user_id)

        def build_args():
            grade = CreditGrade.from_label(credit.grade) if credit.grade else grade_for_score(credit.score)
            limit = to_base_units(credit.pre_approved_limit)
            proof_hash = hash_json(
                {"userId": user_id, "score": credit.score, "grade": grade.value, "limit": str(limit)}
            )
            return (user_id, credit.score, grade.code, limit, proof_hash)

        return await self._write("addCredit", build_args, hashes={"userIdHash": user_id})

    async def query_credit_history(self, user_id: str) -> QueryResult:
        return await self._query("getCreditHistory", (hash_identifier(user_id),), _history)

    async def latest_credit_score(self, user_id: str) -> QueryResult:
        """At most one record: the subject's most recent score."""
        return await self._query("latestCredit", (hash_identifier(user_id),), _latest)


__all__ = ["CreditRegistryFacade"]
