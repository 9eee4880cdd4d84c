from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class NetworkProfile:
    name: str
    chain_id: int
    default_rpc_url: str
    fallback_rpc_urls: Tuple[str, ...] = field(default_factory=tuple)
    explorer_base_url: Optional[str] = None

    def explorer_address_url(self, address: Optional[str]) -> str:
        if not self.explorer_base_url or not address:
            return "N/A (Local network)"
        return f"{self.explorer_base_url}/address/{address}"


NETWORK_PROFILES: Dict[str, NetworkProfile] = {
    "LOCAL": NetworkProfile(
        name="LOCAL",
        chain_id=1337,
        default_rpc_url="http://127.0.0.1:7545",
    ),
    "SEPOLIA": NetworkProfile(
        name="SEPOLIA",
        chain_id=11155111,
        default_rpc_url="https://sepolia.infura.io/v3/YOUR_INFURA_KEY",
        fallback_rpc_urls=(
            "https://rpc.sepolia.org",
            "https://ethereum-sepolia.publicnode.com",
            "https://1rpc.io/sepolia",
            "https://sepolia.gateway.tenderly.co",
            "https://sepolia.drpc.org",
        ),
        explorer_base_url="https://sepolia.etherscan.io",
    ),
    "MUMBAI": NetworkProfile(
        name="MUMBAI",
        chain_id=80001,
        default_rpc_url="https://rpc-mumbai.maticvigil.com",
        explorer_base_url="https://mumbai.polygonscan.com",
    ),
}


__all__ = ["NetworkProfile", "NETWORK_PROFILES"]
