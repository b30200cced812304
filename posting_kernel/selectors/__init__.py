"""Read-only selectors (query side)."""

from posting_kernel.selectors.journal_selector import JournalDTO, JournalLineDTO, JournalSelector
from posting_kernel.selectors.ledger_selector import (
    AccountBalance,
    BalanceDrift,
    LedgerSelector,
    TrialBalanceRow,
)

__all__ = [
    "AccountBalance",
    "BalanceDrift",
    "JournalDTO",
    "JournalLineDTO",
    "JournalSelector",
    "LedgerSelector",
    "TrialBalanceRow",
]
