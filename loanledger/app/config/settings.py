from __future__ import annotations

import functools
import json
from typing import Annotated, Any, Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from loanledger.app.config.networks import NETWORK_PROFILES, NetworkProfile


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # App / env
    app_env: str = Field("dev", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Network
    blockchain_network: str = Field("SEPOLIA", alias="BLOCKCHAIN_NETWORK")
    local_rpc_url: Optional[str] = Field(None, alias="LOCAL_RPC_URL")
    sepolia_rpc_url: Optional[str] = Field(None, alias="SEPOLIA_RPC_URL")
    mumbai_rpc_url: Optional[str] = Field(None, alias="MUMBAI_RPC_URL")
    # comma-separated or JSON list; parsed by parse_fallbacks, not by the env source
    rpc_fallback_urls: Annotated[List[str], NoDecode] = Field(default_factory=list, alias="LEDGER_RPC_FALLBACK_URLS")
    rpc_timeout_seconds: float = Field(15.0, alias="LEDGER_RPC_TIMEOUT_SECONDS")
    rpc_connect_timeout_seconds: float = Field(5.0, alias="LEDGER_RPC_CONNECT_TIMEOUT_SECONDS")

    # Signer
    blockchain_private_key: Optional[str] = Field(None, alias="BLOCKCHAIN_PRIVATE_KEY")

    # Contracts
    loan_core_address: Optional[str] = Field(None, alias="LOAN_CORE_CONTRACT_ADDRESS")
    credit_registry_address: Optional[str] = Field(None, alias="CREDIT_REGISTRY_CONTRACT_ADDRESS")
    payment_ledger_address: Optional[str] = Field(None, alias="PAYMENT_LEDGER_CONTRACT_ADDRESS")
    access_control_address: Optional[str] = Field(None, alias="ACCESS_CONTROL_CONTRACT_ADDRESS")
    abi_dir: Optional[str] = Field(None, alias="LEDGER_ABI_DIR")

    # Write path
    submit_max_attempts: int = Field(3, alias="LEDGER_SUBMIT_MAX_ATTEMPTS")
    submit_timeout_seconds: float = Field(60.0, alias="LEDGER_SUBMIT_TIMEOUT_SECONDS")
    submit_backoff_seconds: float = Field(1.0, alias="LEDGER_SUBMIT_BACKOFF_SECONDS")
    submit_backoff_cap_seconds: float = Field(5.0, alias="LEDGER_SUBMIT_BACKOFF_CAP_SECONDS")

    # Read path
    read_max_attempts: int = Field(5, alias="LEDGER_READ_MAX_ATTEMPTS")
    read_backoff_seconds: float = Field(1.0, alias="LEDGER_READ_BACKOFF_SECONDS")
    read_backoff_cap_seconds: float = Field(15.0, alias="LEDGER_READ_BACKOFF_CAP_SECONDS")

    # Audit publishing
    audit_read_delay_seconds: float = Field(0.5, alias="AUDIT_READ_DELAY_SECONDS")
    audit_backup_dir: str = Field("master_contracts", alias="AUDIT_BACKUP_DIR")
    pinata_jwt: Optional[str] = Field(None, alias="PINATA_JWT")
    pinata_api_url: str = Field("https://api.pinata.cloud/pinning/pinJSONToIPFS", alias="PINATA_API_URL")
    pinata_gateway_url: str = Field("https://gateway.pinata.cloud/ipfs", alias="PINATA_GATEWAY_URL")
    pinata_timeout_seconds: float = Field(30.0, alias="PINATA_TIMEOUT_SECONDS")

    @field_validator("rpc_fallback_urls", mode="before")
    @classmethod
    def parse_fallbacks(cls, v: Any) -> List[str]:
        if v is None:
            return []
        if isinstance(v, list):
            return [str(item).strip() for item in v if str(item).strip()]
        if isinstance(v, str):
            text = v.strip()
            if not text:
                return []
            try:
                parsed = json.loads(text)
                if isinstance(parsed, list):
                    return [str(item).strip() for item in parsed if str(item).strip()]
            except ValueError:
                pass
            return [item.strip() for item in text.split(",") if item.strip()]
        return []

    @field_validator("submit_max_attempts", "read_max_attempts")
    @classmethod
    def clamp_attempts(cls, v: int) -> int:
        return max(1, v)

    @field_validator(
        "submit_backoff_seconds",
        "submit_backoff_cap_seconds",
        "read_backoff_seconds",
        "read_backoff_cap_seconds",
        "audit_read_delay_seconds",
    )
    @classmethod
    def clamp_non_negative(cls, v: float) -> float:
        return max(0.0, v)

    @field_validator("blockchain_network")
    @classmethod
    def normalize_network(cls, v: str) -> str:
        return (v or "SEPOLIA").strip().upper()

    @field_validator("app_env")
    @classmethod
    def normalize_env(cls, v: str) -> str:
        return (v or "dev").lower()

    @property
    def network_profile(self) -> NetworkProfile:
        return NETWORK_PROFILES.get(self.blockchain_network, NETWORK_PROFILES["SEPOLIA"])

    @property
    def primary_rpc_url(self) -> Optional[str]:
        overrides = {
            "LOCAL": self.local_rpc_url,
            "SEPOLIA": self.sepolia_rpc_url,
            "MUMBAI": self.mumbai_rpc_url,
        }
        return overrides.get(self.network_profile.name) or self.network_profile.default_rpc_url

    def contract_addresses(self) -> Dict[str, Optional[str]]:
        return {
            "LoanCore": self.loan_core_address,
            "CreditRegistry": self.credit_registry_address,
            "PaymentLedger": self.payment_ledger_address,
            "AccessControl": self.access_control_address,
        }


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def validate_for_env(settings: Settings) -> Dict[str, Any]:
    issues: list[str] = []
    if settings.blockchain_network not in NETWORK_PROFILES:
        issues.append(f"BLOCKCHAIN_NETWORK {settings.blockchain_network!r} is not a known profile")
    if not settings.blockchain_private_key:
        issues.append("BLOCKCHAIN_PRIVATE_KEY missing; ledger writes will be unavailable")
    for name, address in settings.contract_addresses().items():
        if not address:
            issues.append(f"{name} contract address missing")
    if settings.app_env == "prod":
        if settings.blockchain_network == "LOCAL":
            issues.append("BLOCKCHAIN_NETWORK must not be LOCAL in prod")
        if not settings.pinata_jwt:
            issues.append("PINATA_JWT required in prod for audit publishing")
    summary = settings_public_summary(settings)
    summary["issues"] = issues
    return summary


def settings_public_summary(settings: Optional[Settings] = None) -> Dict[str, Any]:
    s = settings or get_settings()
    profile = s.network_profile
    return {
        "env": s.app_env,
        "network": profile.name,
        "chain_id": profile.chain_id,
        "signer_configured": bool(s.blockchain_private_key),
        "contracts": {name: address for name, address in s.contract_addresses().items()},
        "submit_max_attempts": s.submit_max_attempts,
        "read_max_attempts": s.read_max_attempts,
        "pinata_configured": bool(s.pinata_jwt),
    }


__all__ = ["Settings", "get_settings", "settings_public_summary", "validate_for_env"]
