"""
posting_services -- document lifecycle orchestration.

Responsibility:
    Wires the document state machine to the GL posting and reversal
    engines so a status change and its ledger side effects happen
    together or not at all.

Architecture position:
    Services.  May import from posting_kernel; posting_kernel never
    imports from this package.
"""

from posting_services.document_lifecycle import (
    DocumentLifecycleService,
    DocumentRef,
    LifecycleOutcome,
)

__all__ = [
    "DocumentLifecycleService",
    "DocumentRef",
    "LifecycleOutcome",
]
