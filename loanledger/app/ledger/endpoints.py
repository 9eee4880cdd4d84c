from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional
from urllib.parse import urlparse

from loanledger.app.config.redaction import redact_secrets
from loanledger.app.ledger.errors import ConfigurationError
from loanledger.app.observability import counter, structured_log

logger = logging.getLogger(__name__)

_PLACEHOLDER_MARKERS = ("YOUR_", "<", ">", "CHANGEME", "REPLACE_ME")


@dataclass(frozen=True)
class Endpoint:
    url: str
    position: int

    def __str__(self) -> str:
        return redact_secrets(self.url)


RotationListener = Callable[[Endpoint], None]


def is_usable_url(url: Optional[str]) -> bool:
    if not url or not url.strip():
        return False
    text = url.strip()
    if any(marker in text.upper() for marker in _PLACEHOLDER_MARKERS):
        return False
    parsed = urlparse(text)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class EndpointPool:
    """Ordered, circular list of RPC endpoints for one network profile.

    The active endpoint only changes through ``rotate()``. Listeners registered
    with ``subscribe()`` are told about every move, which is how the transport
    rebinds and the nonce allocator drops its cache.
    """

    def __init__(self, urls: Iterable[Optional[str]], *, network: str = "") -> None:
        cleaned: List[str] = []
        for url in urls:
            if not is_usable_url(url):
                continue
            text = url.strip()  # type: ignore[union-attr]
            if text not in cleaned:
                cleaned.append(text)
        if not cleaned:
            raise ConfigurationError(f"no usable RPC endpoint configured for network {network or '?'}")
        self.network = network
        self._endpoints = [Endpoint(url=url, position=i) for i, url in enumerate(cleaned)]
        self._index = 0
        self._listeners: List[RotationListener] = []
        self.rotations = 0

    @property
    def active(self) -> Endpoint:
        return self._endpoints[self._index]

    @property
    def endpoints(self) -> List[Endpoint]:
        return list(self._endpoints)

    def __len__(self) -> int:
        return len(self._endpoints)

    def subscribe(self, listener: RotationListener) -> None:
        self._listeners.append(listener)

    def rotate(self, *, reason: str = "") -> bool:
        if len(self._endpoints) <= 1:
            return False
        previous = self.active
        self._index = (self._index + 1) % len(self._endpoints)
        self.rotations += 1
        current = self.active
        structured_log(
            {
                "type": "ledger_endpoint_rotated",
                "network": self.network,
                "from_position": previous.position,
                "to_position": current.position,
                "to_endpoint": str(current),
                "reason": reason,
            },
            level=logging.WARNING,
        )
        counter("ledger_endpoint_rotations", labels={"network": self.network, "reason": reason or "unspecified"})
        for listener in list(self._listeners):
            listener(current)
        return True


__all__ = ["Endpoint", "EndpointPool", "RotationListener", "is_usable_url"]
