from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from loanledger.app.ledger.endpoints import Endpoint, EndpointPool
from loanledger.app.ledger.rpc import JsonRpcTransport
from loanledger.app.observability import structured_log

logger = logging.getLogger(__name__)


@dataclass
class PendingNonce:
    value: int
    endpoint_position: int


class NonceAllocator:
    """Process-local "next nonce" for one signing account.

    The first ``reserve()`` after construction, rotation or ``invalidate()``
    re-syncs from the active endpoint's pending transaction count; later calls
    hand out consecutive values from memory. Nothing here coordinates with other
    processes signing for the same account.
    """

    def __init__(self, transport: JsonRpcTransport, pool: EndpointPool, address: str) -> None:
        self._transport = transport
        self._pool = pool
        self._address = address
        self._pending: Optional[PendingNonce] = None
        self._lock = asyncio.Lock()
        self.syncs = 0
        pool.subscribe(self._on_rotate)

    @property
    def cached(self) -> Optional[int]:
        return self._pending.value if self._pending is not None else None

    def invalidate(self) -> None:
        self._pending = None

    def _on_rotate(self, _endpoint: Endpoint) -> None:
        self.invalidate()

    async def reserve(self) -> int:
        async with self._lock:
            active = self._pool.active.position
            if self._pending is None or self._pending.endpoint_position != active:
                value = await self._transport.get_transaction_count(self._address, "pending")
                self.syncs += 1
                structured_log({"type": "ledger_nonce_synced", "nonce": value, "endpoint_position": active})
                self._pending = PendingNonce(value=value, endpoint_position=active)
            nonce = self._pending.value
            self._pending.value = nonce + 1
            return nonce


__all__ = ["NonceAllocator", "PendingNonce"]
