from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from loanledger.app.config.redaction import safe_error_detail
from loanledger.app.ledger.abi import ContractBinding
from loanledger.app.ledger.errors import FailureType, LedgerError, failure_type_for
from loanledger.app.ledger.hashing import HashedIdentifier, hash_identifier, is_hashed_identifier
from loanledger.app.ledger.reader import ReadRetrier, is_unavailable
from loanledger.app.ledger.records import QueryResult, SubmitResult
from loanledger.app.ledger.submitter import TransactionSubmitter
from loanledger.app.observability import counter, structured_log

logger = logging.getLogger(__name__)

GAS_LIMITS: Dict[str, int] = {
    "createLoan": 500_000,
    "logChat": 300_000,
    "logDocument": 350_000,
    "addCredit": 300_000,
    "addDisbursement": 350_000,
    "payEMI": 350_000,
    "addAdmin": 150_000,
}

ArgsBuilder = Callable[[], Tuple[Any, ...]]


def digest(value: Optional[str]) -> HashedIdentifier:
    """Pass through values that are already digests; hash everything else."""
    if is_hashed_identifier(value):
        return str(value)
    return hash_identifier(value)


class ContractFacade:
    """Domain operations for one deployed contract.

    A facade without a binding (no address or ABI) or without a signer stays
    constructible; its writes and reads report NOT_AVAILABLE without touching
    the network. Ledger errors become structured results here and go no
    further.
    """

    contract_name = ""

    def __init__(
        self,
        binding: Optional[ContractBinding],
        *,
        submitter: Optional[TransactionSubmitter] = None,
        reader: Optional[ReadRetrier] = None,
    ) -> None:
        self.binding = binding
        self._submitter = submitter
        self._reader = reader

    @property
    def address(self) -> Optional[str]:
        return self.binding.address if self.binding else None

    @property
    def can_write(self) -> bool:
        return self.binding is not None and self._submitter is not None

    @property
    def can_read(self) -> bool:
        return self.binding is not None and self._reader is not None

    def _not_available(self, action: str) -> str:
        return f"{self.contract_name} {action} not available: contract not initialized"

    async def _write(
        self,
        function: str,
        build_args: ArgsBuilder,
        *,
        hashes: Optional[Dict[str, str]] = None,
    ) -> SubmitResult:
        label = f"{self.contract_name}.{function}"
        binding, submitter = self.binding, self._submitter
        if binding is None or submitter is None:
            structured_log({"type": "ledger_write_skipped", "call": label}, level=logging.WARNING)
            return SubmitResult(
                accepted=False,
                error=self._not_available("write"),
                failure=FailureType.NOT_AVAILABLE,
            )
        try:
            call = binding.encode_call(function, *build_args())
            tx_hash = await submitter.submit(call, GAS_LIMITS.get(function, 300_000))
        except LedgerError as exc:
            failure = failure_type_for(exc)
            counter("ledger_writes_total", labels={"call": label, "outcome": failure.value})
            structured_log(
                {"type": "ledger_write_failed", "call": label, "failure": failure.value},
                level=logging.WARNING,
            )
            return SubmitResult(accepted=False, error=safe_error_detail(exc), failure=failure)
        counter("ledger_writes_total", labels={"call": label, "outcome": "accepted"})
        return SubmitResult(accepted=True, transaction_hash=tx_hash, hashes=dict(hashes or {}))

    async def _read(self, function: str, *args: Any) -> Any:
        """Raw read through the retrier; may return ``UNAVAILABLE`` or raise ``LedgerError``."""
        binding, reader = self.binding, self._reader
        if binding is None or reader is None:
            raise LedgerError(self._not_available("read"))
        return await reader.call(binding, function, *args)

    async def _query(
        self,
        function: str,
        args: Sequence[Any],
        convert: Callable[[Any], List[Any]],
    ) -> QueryResult:
        label = f"{self.contract_name}.{function}"
        if not self.can_read:
            return QueryResult(available=False, error=self._not_available("read"), failure=FailureType.NOT_AVAILABLE)
        try:
            raw = await self._read(function, *args)
            if is_unavailable(raw):
                return QueryResult(
                    available=False,
                    error=f"{label} unavailable: network retries exhausted",
                    failure=FailureType.TRANSIENT,
                )
            records = convert(raw)
        except LedgerError as exc:
            failure = failure_type_for(exc)
            structured_log({"type": "ledger_read_failed", "call": label, "failure": failure.value}, level=logging.WARNING)
            return QueryResult(available=False, error=safe_error_detail(exc), failure=failure)
        except (KeyError, TypeError, ValueError) as exc:
            # malformed tuple from a contract that does not match the bundled ABI
            logger.warning("ledger read returned unexpected shape", extra={"call": label})
            return QueryResult(
                available=False,
                error=safe_error_detail(exc),
                failure=FailureType.ENCODING,
            )
        return QueryResult(available=True, records=records)


__all__ = ["ContractFacade", "GAS_LIMITS", "digest"]
