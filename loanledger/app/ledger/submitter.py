from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from loanledger.app.ledger.abi import PreparedCall
from loanledger.app.ledger.endpoints import EndpointPool
from loanledger.app.ledger.errors import LedgerError
from loanledger.app.ledger.nonce import NonceAllocator
from loanledger.app.ledger.retry import RetryPolicy, Sleeper, enforce_timeout, run_with_retry
from loanledger.app.ledger.rpc import JsonRpcTransport
from loanledger.app.ledger.signer import Signer
from loanledger.app.observability import histogram, structured_log

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TxOptions:
    sender: str
    gas_limit: int
    gas_price: int
    nonce: int
    chain_id: int

    def as_transaction(self, call: PreparedCall) -> Dict[str, Any]:
        return {
            "to": call.address,
            "value": 0,
            "data": call.data,
            "gas": self.gas_limit,
            "gasPrice": self.gas_price,
            "nonce": self.nonce,
            "chainId": self.chain_id,
        }


class TransactionSubmitter:
    """Signs and sends contract writes, returning once the pending pool accepts them.

    One attempt is: fresh gas price, nonce reservation, sign, send, all inside a
    fixed timeout window. The returned hash means "accepted into the pending
    pool", not "mined". Any error invalidates the nonce cache so the next
    reservation re-syncs.
    """

    def __init__(
        self,
        *,
        transport: JsonRpcTransport,
        pool: EndpointPool,
        signer: Signer,
        nonces: NonceAllocator,
        chain_id: int,
        policy: RetryPolicy,
        attempt_timeout_seconds: float = 60.0,
        sleep: Sleeper = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._transport = transport
        self._pool = pool
        self._signer = signer
        self._nonces = nonces
        self._chain_id = chain_id
        self._policy = policy
        self._attempt_timeout_seconds = attempt_timeout_seconds
        self._sleep = sleep
        self._rng = rng

    @property
    def sender(self) -> str:
        return self._signer.address

    async def tx_options(self, gas_limit: int) -> TxOptions:
        gas_price = await self._transport.gas_price()
        nonce = await self._nonces.reserve()
        return TxOptions(
            sender=self._signer.address,
            gas_limit=int(gas_limit),
            gas_price=gas_price,
            nonce=nonce,
            chain_id=self._chain_id,
        )

    async def _attempt(self, call: PreparedCall, gas_limit: int) -> str:
        options = await self.tx_options(gas_limit)
        try:
            raw = self._signer.sign_transaction(options.as_transaction(call))
            tx_hash = await self._transport.send_raw_transaction(raw)
        except BaseException:
            # the reserved nonce may never reach the node; re-sync next time
            self._nonces.invalidate()
            raise
        structured_log(
            {
                "type": "ledger_tx_accepted",
                "call": call.label,
                "nonce": options.nonce,
                "tx_hash": tx_hash,
                "status": "pending",
            }
        )
        return tx_hash

    def _on_error(self, exc: LedgerError) -> None:
        self._nonces.invalidate()
        logger.warning("ledger submission failed; nonce cache reset", extra={"error_type": type(exc).__name__})

    async def submit(self, call: PreparedCall, gas_limit: int) -> str:
        started = time.monotonic()

        async def attempt() -> str:
            return await enforce_timeout(
                lambda: self._attempt(call, gas_limit),
                self._attempt_timeout_seconds,
                label=call.label,
            )

        try:
            return await run_with_retry(
                attempt,
                policy=self._policy,
                pool=self._pool,
                label=call.label,
                sleep=self._sleep,
                rng=self._rng,
                on_error=self._on_error,
            )
        finally:
            histogram("ledger_submit_latency_ms", (time.monotonic() - started) * 1000, labels={"call": call.label})


__all__ = ["TransactionSubmitter", "TxOptions"]
