from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

VERSION_ON_CHAIN = "2.0"
VERSION_HYBRID = "2.1-hybrid"
ARCHITECTURE = "Modular Blockchain"

# (document key, summary key) in the order categories are read and published
CATEGORIES: Tuple[Tuple[str, str], ...] = (
    ("loans", "totalLoans"),
    ("chatLogs", "totalChats"),
    ("documents", "totalDocuments"),
    ("creditHistory", "totalCredits"),
    ("disbursements", "totalDisbursements"),
    ("emis", "totalEMIs"),
)


class AuditMode(str, Enum):
    ON_CHAIN = "on-chain"
    HYBRID = "hybrid"

    @property
    def label(self) -> str:
        return "hybrid-local-data" if self is AuditMode.HYBRID else "on-chain"

    @property
    def version(self) -> str:
        return VERSION_HYBRID if self is AuditMode.HYBRID else VERSION_ON_CHAIN


@dataclass(frozen=True)
class Provenance:
    network: str
    chain_id: int
    contracts: Dict[str, Optional[str]]
    explorer_url: str

    def as_dict(self) -> Dict[str, Any]:
        return {
            "network": self.network,
            "chainId": self.chain_id,
            "loanCoreAddress": self.contracts.get("LoanCore"),
            "creditRegistryAddress": self.contracts.get("CreditRegistry"),
            "paymentLedgerAddress": self.contracts.get("PaymentLedger"),
            "accessControlAddress": self.contracts.get("AccessControl"),
            "explorerUrl": self.explorer_url,
        }


@dataclass(frozen=True)
class AuditDocument:
    """One generated version of a subject's audit trail. Regeneration builds a new one."""

    subject_id: str
    subject_hash: str
    generated_at: str
    mode: AuditMode
    provenance: Provenance
    records: Dict[str, List[Any]]
    unavailable: Tuple[str, ...] = ()
    notes: Dict[str, str] = field(default_factory=dict)

    @property
    def version(self) -> str:
        return self.mode.version

    @property
    def complete(self) -> bool:
        return not self.unavailable

    def summary(self) -> Dict[str, int]:
        return {total: len(self.records.get(key, [])) for key, total in CATEGORIES}

    def as_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "architecture": ARCHITECTURE,
            "userId": self.subject_id,
            "userIdHash": self.subject_hash,
            "generated": self.generated_at,
            "mode": self.mode.label,
            "blockchain": self.provenance.as_dict(),
            "complete": self.complete,
            "possiblyIncomplete": not self.complete,
            "unavailableCategories": list(self.unavailable),
            "summary": self.summary(),
            "transactions": {
                key: [r.as_dict() if hasattr(r, "as_dict") else r for r in self.records.get(key, [])]
                for key, _ in CATEGORIES
            },
            "verification": dict(self.notes),
        }


@dataclass(frozen=True)
class PublishedAudit:
    document: AuditDocument
    published_hash: Optional[str] = None
    url: Optional[str] = None
    local_path: Optional[str] = None
    error: Optional[str] = None

    @property
    def published(self) -> bool:
        return self.published_hash is not None

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "publishedHash": self.published_hash,
            "url": self.url,
            "document": self.document.as_dict(),
        }
        if self.local_path:
            payload["localPath"] = self.local_path
        if self.error:
            payload["error"] = self.error
        return payload


__all__ = [
    "ARCHITECTURE",
    "AuditDocument",
    "AuditMode",
    "CATEGORIES",
    "Provenance",
    "PublishedAudit",
    "VERSION_HYBRID",
    "VERSION_ON_CHAIN",
]
