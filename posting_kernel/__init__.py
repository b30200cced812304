"""
Posting Kernel

Document numbering and double-entry posting for business documents:
- Scoped, formatted, periodically reset number series
- Balanced journal entries with running account balances
- Auditable reversal by mirrored entries
- Document lifecycle state machine
"""

__version__ = "0.1.0"
