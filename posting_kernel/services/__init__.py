"""Services for the posting kernel (write side)."""

from posting_kernel.services.auditor_service import AuditorService, AuditSink, AuditTraceEntry
from posting_kernel.services.chart_of_accounts_service import ChartOfAccountsService
from posting_kernel.services.number_series_service import (
    JOURNAL_SERIES_KEY,
    AllocatedNumber,
    NumberSeriesService,
)
from posting_kernel.services.posting_service import GLPostingService
from posting_kernel.services.reversal_service import ReversalService

__all__ = [
    "AllocatedNumber",
    "AuditSink",
    "AuditTraceEntry",
    "AuditorService",
    "ChartOfAccountsService",
    "GLPostingService",
    "JOURNAL_SERIES_KEY",
    "NumberSeriesService",
    "ReversalService",
]
