"""Process-wide ledger state, built once from settings and passed explicitly.

Construction never touches the network. ``initialize()`` probes the chain and
the signer's admin rights; both only log when something is off, so a process
can start while the ledger is unreachable and report NOT_AVAILABLE/UNAVAILABLE
results instead.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Dict, Optional

import httpx

from loanledger.app.config.networks import NetworkProfile
from loanledger.app.config.settings import Settings, get_settings
from loanledger.app.ledger.abi import ContractBinding, load_abi
from loanledger.app.ledger.endpoints import EndpointPool
from loanledger.app.ledger.errors import LedgerError, failure_type_for
from loanledger.app.ledger.facades import (
    AccessControlFacade,
    CreditRegistryFacade,
    LoanRegistryFacade,
    PaymentLedgerFacade,
)
from loanledger.app.ledger.nonce import NonceAllocator
from loanledger.app.ledger.reader import ReadRetrier
from loanledger.app.ledger.retry import Sleeper, read_policy, write_policy
from loanledger.app.ledger.rpc import JsonRpcTransport
from loanledger.app.ledger.signer import Signer
from loanledger.app.ledger.submitter import TransactionSubmitter
from loanledger.app.observability import structured_log

logger = logging.getLogger(__name__)

PROBE_ATTEMPTS = 3


def _binding(name: str, address: Optional[str], abi_dir: Optional[str]) -> Optional[ContractBinding]:
    if not address or not address.strip():
        logger.warning("contract address not configured; facade disabled", extra={"contract": name})
        return None
    return ContractBinding(name, address.strip(), load_abi(name, abi_dir))


class LedgerContext:
    def __init__(
        self,
        *,
        settings: Settings,
        profile: NetworkProfile,
        pool: EndpointPool,
        transport: JsonRpcTransport,
        reader: ReadRetrier,
        signer: Optional[Signer],
        nonces: Optional[NonceAllocator],
        submitter: Optional[TransactionSubmitter],
        bindings: Dict[str, Optional[ContractBinding]],
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.profile = profile
        self.pool = pool
        self.transport = transport
        self.reader = reader
        self.signer = signer
        self.nonces = nonces
        self.submitter = submitter
        self.bindings = bindings
        self._sleep = sleep
        self.connected = False

        self.loans = LoanRegistryFacade(bindings.get("LoanCore"), submitter=submitter, reader=reader)
        self.credit = CreditRegistryFacade(bindings.get("CreditRegistry"), submitter=submitter, reader=reader)
        self.payments = PaymentLedgerFacade(bindings.get("PaymentLedger"), submitter=submitter, reader=reader)
        self.access = AccessControlFacade(bindings.get("AccessControl"), submitter=submitter, reader=reader)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Sleeper = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ) -> "LedgerContext":
        """Wire pool, transport, signer and facades.

        Raises ``ConfigurationError`` when no usable endpoint exists or when a
        configured key, address or ABI is malformed. A missing key or address
        only disables the affected writes/facades.
        """
        settings = settings or get_settings()
        profile = settings.network_profile
        pool = EndpointPool(
            [settings.primary_rpc_url, *settings.rpc_fallback_urls, *profile.fallback_rpc_urls],
            network=profile.name,
        )
        transport = JsonRpcTransport(
            pool,
            timeout_seconds=settings.rpc_timeout_seconds,
            connect_timeout_seconds=settings.rpc_connect_timeout_seconds,
            client=client,
        )
        reader = ReadRetrier(transport=transport, pool=pool, policy=read_policy(settings), sleep=sleep, rng=rng)

        signer: Optional[Signer] = None
        nonces: Optional[NonceAllocator] = None
        submitter: Optional[TransactionSubmitter] = None
        if settings.blockchain_private_key:
            signer = Signer.from_private_key(settings.blockchain_private_key)
            nonces = NonceAllocator(transport, pool, signer.address)
            submitter = TransactionSubmitter(
                transport=transport,
                pool=pool,
                signer=signer,
                nonces=nonces,
                chain_id=profile.chain_id,
                policy=write_policy(settings),
                attempt_timeout_seconds=settings.submit_timeout_seconds,
                sleep=sleep,
                rng=rng,
            )
        else:
            logger.warning("BLOCKCHAIN_PRIVATE_KEY not set; ledger writes disabled")

        bindings = {
            name: _binding(name, address, settings.abi_dir)
            for name, address in settings.contract_addresses().items()
        }

        structured_log(
            {
                "type": "ledger_context_built",
                "network": profile.name,
                "chain_id": profile.chain_id,
                "endpoints": len(pool),
                "signer": signer.address if signer else None,
                "contracts": sorted(name for name, b in bindings.items() if b is not None),
            }
        )
        return cls(
            settings=settings,
            profile=profile,
            pool=pool,
            transport=transport,
            reader=reader,
            signer=signer,
            nonces=nonces,
            submitter=submitter,
            bindings=bindings,
            sleep=sleep,
        )

    @property
    def can_write(self) -> bool:
        return self.submitter is not None

    async def initialize(self) -> bool:
        """Probe the chain (rotating on failure) and check admin rights. Returns connectivity."""
        block: Optional[int] = None
        for attempt in range(PROBE_ATTEMPTS):
            try:
                block = await self.transport.block_number()
                break
            except LedgerError as exc:
                structured_log(
                    {
                        "type": "ledger_probe_failed",
                        "attempt": attempt + 1,
                        "endpoint": str(self.pool.active),
                        "failure": failure_type_for(exc).value,
                    },
                    level=logging.WARNING,
                )
                if attempt < PROBE_ATTEMPTS - 1:
                    self.pool.rotate(reason="probe_failed")
                    await self._sleep(1.0)

        self.connected = block is not None
        if not self.connected:
            logger.error("ledger unreachable on every probed endpoint", extra={"network": self.profile.name})
            return False

        try:
            chain_id = await self.transport.chain_id()
        except LedgerError:
            chain_id = None
        if chain_id is not None and chain_id != self.profile.chain_id:
            logger.warning(
                "endpoint chain id does not match network profile",
                extra={"expected": self.profile.chain_id, "actual": chain_id},
            )

        if self.signer is not None and self.access.can_read:
            is_admin = await self.access.is_admin(self.signer.address)
            if is_admin is False:
                logger.warning("signer is not an admin; contract writes will revert", extra={"signer": self.signer.address})

        structured_log(
            {
                "type": "ledger_connected",
                "network": self.profile.name,
                "endpoint": str(self.pool.active),
                "block": block,
            }
        )
        return True

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def __aenter__(self) -> "LedgerContext":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


__all__ = ["LedgerContext", "PROBE_ATTEMPTS"]
