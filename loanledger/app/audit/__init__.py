from .aggregator import AuditAggregator
from .document import AuditDocument, AuditMode, PublishedAudit
from .snapshot import LocalSnapshot
from .storage import LocalBackupStore, PinataStore, PublishError, safe_subject

__all__ = [
    "AuditAggregator",
    "AuditDocument",
    "AuditMode",
    "LocalBackupStore",
    "LocalSnapshot",
    "PinataStore",
    "PublishError",
    "PublishedAudit",
    "safe_subject",
]
