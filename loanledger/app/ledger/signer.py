from __future__ import annotations

from typing import Any, Dict, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount

from loanledger.app.ledger.errors import ConfigurationError


class Signer:
    """Holds the process's signing account. The key never leaves this object."""

    __slots__ = ("_account",)

    def __init__(self, account: LocalAccount) -> None:
        self._account = account

    @classmethod
    def from_private_key(cls, private_key: Optional[str]) -> "Signer":
        if not private_key or not private_key.strip():
            raise ConfigurationError("signing key not configured")
        try:
            account = Account.from_key(private_key.strip())
        except (ValueError, TypeError):
            # the message from eth_account can echo the key; do not chain its text
            raise ConfigurationError("signing key is malformed") from None
        return cls(account)

    @property
    def address(self) -> str:
        return self._account.address

    def sign_transaction(self, tx: Dict[str, Any]) -> bytes:
        signed = self._account.sign_transaction(tx)
        return bytes(signed.raw_transaction)

    def __repr__(self) -> str:
        return f"Signer(address={self.address})"

    __str__ = __repr__


__all__ = ["Signer"]
