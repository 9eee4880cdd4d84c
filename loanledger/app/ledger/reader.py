from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Optional

from loanledger.app.ledger.abi import ContractBinding
from loanledger.app.ledger.endpoints import EndpointPool
from loanledger.app.ledger.errors import TransientNetworkError, failure_type_for
from loanledger.app.ledger.retry import RetryPolicy, Sleeper, run_with_retry
from loanledger.app.ledger.rpc import JsonRpcTransport
from loanledger.app.observability import structured_log

logger = logging.getLogger(__name__)


class _Unavailable:
    """Returned instead of a value when transient retries are exhausted."""

    _instance: Optional["_Unavailable"] = None

    def __new__(cls) -> "_Unavailable":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNAVAILABLE"


UNAVAILABLE = _Unavailable()


def is_unavailable(value: Any) -> bool:
    return value is UNAVAILABLE


class ReadRetrier:
    def __init__(
        self,
        *,
        transport: JsonRpcTransport,
        pool: EndpointPool,
        policy: RetryPolicy,
        sleep: Sleeper = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._transport = transport
        self._pool = pool
        self._policy = policy
        self._sleep = sleep
        self._rng = rng

    async def call(self, binding: ContractBinding, function: str, *args: Any) -> Any:
        """Read-only contract call; ``UNAVAILABLE`` when the network stayed unreachable.

        Encoding problems, reverts and other non-transient errors propagate.
        """
        prepared = binding.encode_call(function, *args)

        async def operation() -> Any:
            data = await self._transport.call(prepared.address, prepared.data)
            return binding.decode_output(function, data)

        try:
            return await run_with_retry(
                operation,
                policy=self._policy,
                pool=self._pool,
                label=prepared.label,
                sleep=self._sleep,
                rng=self._rng,
            )
        except TransientNetworkError as exc:
            structured_log(
                {
                    "type": "ledger_read_unavailable",
                    "call": prepared.label,
                    "failure": failure_type_for(exc).value,
                },
                level=logging.WARNING,
            )
            return UNAVAILABLE


__all__ = ["ReadRetrier", "UNAVAILABLE", "is_unavailable"]
