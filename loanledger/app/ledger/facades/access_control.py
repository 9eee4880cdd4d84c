from __future__ import annotations

import logging
from typing import Optional

from loanledger.app.ledger.errors import LedgerError
from loanledger.app.ledger.facades.base import ContractFacade
from loanledger.app.ledger.reader import is_unavailable
from loanledger.app.ledger.records import SubmitResult

logger = logging.getLogger(__name__)


class AccessControlFacade(ContractFacade):
    contract_name = "AccessControl"

    async def is_admin(self, address: str) -> Optional[bool]:
        """``None`` when the answer could not be obtained."""
        if not self.can_read:
            return None
        try:
            value = await self._read("isAdmin", address)
        except LedgerError as exc:
            logger.warning("admin check failed", extra={"error_type": type(exc).__name__})
            return None
        if is_unavailable(value):
            return None
        return bool(value)

    async def owner(self) -> Optional[str]:
        if not self.can_read:
            return None
        try:
            value = await self._read("owner")
        except LedgerError as exc:
            logger.warning("owner lookup failed", extra={"error_type": type(exc).__name__})
            return None
        if is_unavailable(value):
            return None
        return value

    async def add_admin(self, address: str) -> SubmitResult:
        return await self._write("addAdmin", lambda: (address,), hashes={"admin": address})


__all__ = ["AccessControlFacade"]
