"""Per-subject audit documents, built from the ledgers or from local state.

On-chain mode reads every category through the facades, pausing between
reads so a rate-limited endpoint is not hit in a burst. A category whose
read could not complete is published empty and listed as unavailable, which
marks the document possibly incomplete. Hybrid mode builds the same shape
from a ``LocalSnapshot`` without any network read.

The aggregator never writes to a ledger. Publishing failures are reported on
the returned ``PublishedAudit`` and never raised.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import httpx

from loanledger.app.audit.document import CATEGORIES, AuditDocument, AuditMode, Provenance, PublishedAudit
from loanledger.app.audit.snapshot import LocalSnapshot, snapshot_records
from loanledger.app.audit.storage import LocalBackupStore, PinataStore, PublishError, safe_subject
from loanledger.app.config.redaction import safe_error_detail
from loanledger.app.ledger.context import LedgerContext
from loanledger.app.ledger.errors import LedgerError
from loanledger.app.ledger.hashing import hash_identifier, hash_json
from loanledger.app.ledger.records import QueryResult
from loanledger.app.ledger.retry import Sleeper
from loanledger.app.observability import counter, hash_subject, structured_log

logger = logging.getLogger(__name__)

Clock = Callable[[], dt.datetime]

_ON_CHAIN_NOTES = {
    "note": "All hashes use keccak256. Full data stored off-chain.",
    "blockchainProof": "Verify on-chain at the explorer URL above",
}
_HYBRID_NOTES = {
    "note": "Generated from local data plus write-path transaction hashes (hybrid mode).",
    "blockchainProof": "Verify each txHash at the explorer URL above; 'pending' entries were not confirmed",
    "dataSource": "hybrid local data",
}


def _utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _iso(moment: dt.datetime) -> str:
    return moment.astimezone(dt.timezone.utc).isoformat().replace("+00:00", "Z")


class AuditAggregator:
    def __init__(
        self,
        context: LedgerContext,
        *,
        pinata: Optional[PinataStore] = None,
        backup: Optional[LocalBackupStore] = None,
        read_delay_seconds: float = 0.5,
        sleep: Sleeper = asyncio.sleep,
        clock: Clock = _utc_now,
    ) -> None:
        self.context = context
        self.pinata = pinata
        self.backup = backup
        self.read_delay_seconds = read_delay_seconds
        self._sleep = sleep
        self._clock = clock

    @classmethod
    def from_context(
        cls,
        context: LedgerContext,
        *,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Sleeper = asyncio.sleep,
        clock: Clock = _utc_now,
    ) -> "AuditAggregator":
        settings = context.settings
        return cls(
            context,
            pinata=PinataStore(
                settings.pinata_jwt,
                api_url=settings.pinata_api_url,
                gateway_url=settings.pinata_gateway_url,
                timeout_seconds=settings.pinata_timeout_seconds,
                client=client,
            ),
            backup=LocalBackupStore(settings.audit_backup_dir),
            read_delay_seconds=settings.audit_read_delay_seconds,
            sleep=sleep,
            clock=clock,
        )

    def _provenance(self) -> Provenance:
        profile = self.context.profile
        addresses = {name: (b.address if b else None) for name, b in self.context.bindings.items()}
        return Provenance(
            network=profile.name,
            chain_id=profile.chain_id,
            contracts=addresses,
            explorer_url=profile.explorer_address_url(addresses.get("LoanCore")),
        )

    def _readers(self, subject_id: str) -> Dict[str, Callable[[], Awaitable[QueryResult]]]:
        ctx = self.context
        return {
            "loans": lambda: ctx.loans.query_loans(subject_id),
            "chatLogs": lambda: ctx.loans.query_chat_logs(subject_id),
            "documents": lambda: ctx.loans.query_documents(subject_id),
            "creditHistory": lambda: ctx.credit.query_credit_history(subject_id),
            "disbursements": lambda: ctx.payments.query_disbursements(subject_id),
            "emis": lambda: ctx.payments.query_emis(subject_id),
        }

    async def collect_on_chain(self, subject_id: str) -> AuditDocument:
        readers = self._readers(subject_id)
        records: Dict[str, List[Any]] = {}
        unavailable: List[str] = []
        for index, (key, _) in enumerate(CATEGORIES):
            if index and self.read_delay_seconds > 0:
                await self._sleep(self.read_delay_seconds)
            result = await readers[key]()
            if result.available:
                records[key] = list(result.records)
            else:
                records[key] = []
                unavailable.append(key)
                structured_log(
                    {
                        "type": "audit_category_unavailable",
                        "subject": hash_subject(subject_id),
                        "category": key,
                        "failure": result.failure.value if result.failure else None,
                    },
                    level=logging.WARNING,
                )
        return AuditDocument(
            subject_id=subject_id,
            subject_hash=hash_identifier(subject_id),
            generated_at=_iso(self._clock()),
            mode=AuditMode.ON_CHAIN,
            provenance=self._provenance(),
            records=records,
            unavailable=tuple(unavailable),
            notes=dict(_ON_CHAIN_NOTES),
        )

    def collect_hybrid(self, subject_id: str, snapshot: LocalSnapshot) -> AuditDocument:
        generated_at = _iso(self._clock())
        notes = dict(_HYBRID_NOTES)
        if snapshot.customer:
            notes["customerProfileHash"] = hash_json(snapshot.customer)
        return AuditDocument(
            subject_id=subject_id,
            subject_hash=hash_identifier(subject_id),
            generated_at=generated_at,
            mode=AuditMode.HYBRID,
            provenance=self._provenance(),
            records=snapshot_records(snapshot, timestamp=generated_at),
            notes=notes,
        )

    async def publish(self, document: AuditDocument) -> PublishedAudit:
        payload = document.as_dict()
        errors: List[str] = []
        content_hash: Optional[str] = None
        url: Optional[str] = None
        local_path: Optional[str] = None

        if self.pinata is None:
            errors.append("content-addressed storage not configured")
        else:
            try:
                content_hash, url = await self.pinata.upload_json(payload, f"{safe_subject(document.subject_id)}_master.json")
            except PublishError as exc:
                errors.append(safe_error_detail(exc))

        if self.backup is not None:
            try:
                local_path = str(self.backup.write(document.subject_id, payload))
            except PublishError as exc:
                errors.append(safe_error_detail(exc))

        outcome = "published" if content_hash else "unpublished"
        counter("audit_documents_total", labels={"mode": document.mode.value, "outcome": outcome})
        structured_log(
            {
                "type": "audit_published",
                "subject": hash_subject(document.subject_id),
                "mode": document.mode.value,
                "complete": document.complete,
                "content_hash": content_hash,
                "backup": bool(local_path),
                "errors": len(errors),
            },
            level=logging.INFO if not errors else logging.WARNING,
        )
        return PublishedAudit(
            document=document,
            published_hash=content_hash,
            url=url,
            local_path=local_path,
            error="; ".join(errors) or None,
        )

    def _invalid_snapshot(self, subject_id: str, exc: LedgerError) -> PublishedAudit:
        document = AuditDocument(
            subject_id=subject_id,
            subject_hash=hash_identifier(subject_id),
            generated_at=_iso(self._clock()),
            mode=AuditMode.HYBRID,
            provenance=self._provenance(),
            records={key: [] for key, _ in CATEGORIES},
            unavailable=tuple(key for key, _ in CATEGORIES),
            notes=dict(_HYBRID_NOTES),
        )
        counter("audit_documents_total", labels={"mode": AuditMode.HYBRID.value, "outcome": "invalid_snapshot"})
        structured_log(
            {
                "type": "audit_snapshot_rejected",
                "subject": hash_subject(subject_id),
                "error_type": type(exc).__name__,
            },
            level=logging.WARNING,
        )
        return PublishedAudit(document=document, error=f"invalid local snapshot: {safe_error_detail(exc)}")

    async def build_audit_document(
        self,
        subject_id: str,
        mode: Union[AuditMode, str] = AuditMode.ON_CHAIN,
        snapshot: Optional[LocalSnapshot] = None,
    ) -> PublishedAudit:
        """Build, publish and back up one audit document version for ``subject_id``.

        Hybrid mode requires ``snapshot`` and raises ``ValueError`` without it.
        A snapshot whose values cannot be normalized is reported on
        ``PublishedAudit.error`` with an empty document and nothing published.
        """
        mode = AuditMode(mode)
        if mode is AuditMode.HYBRID:
            if snapshot is None:
                raise ValueError("hybrid audit requires a local snapshot")
            try:
                document = self.collect_hybrid(subject_id, snapshot)
            except LedgerError as exc:
                return self._invalid_snapshot(subject_id, exc)
        else:
            document = await self.collect_on_chain(subject_id)
        if not document.complete:
            logger.warning(
                "audit document possibly incomplete",
                extra={"subject": hash_subject(subject_id), "unavailable": list(document.unavailable)},
            )
        return await self.publish(document)


__all__ = ["AuditAggregator"]
