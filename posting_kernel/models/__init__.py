"""ORM models for the posting kernel."""

from posting_kernel.models.account import Account, AccountType
from posting_kernel.models.audit_event import (
    AuditAction,
    AuditChainHead,
    AuditEntityType,
    AuditEvent,
)
from posting_kernel.models.journal import (
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
)
from posting_kernel.models.number_series import (
    AllocationStatus,
    NumberAllocation,
    NumberSeries,
)

__all__ = [
    "Account",
    "AccountType",
    "AllocationStatus",
    "AuditAction",
    "AuditChainHead",
    "AuditEntityType",
    "AuditEvent",
    "JournalEntry",
    "JournalEntryStatus",
    "JournalLine",
    "NumberAllocation",
    "NumberSeries",
]
