"""
Module: posting_kernel.models.account
Responsibility: ORM persistence for the chart of accounts -- the target of
    every journal line.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - code is unique within a company (uq_account_company_code).
    - current_balance equals the sum of (debit - credit) over every posted
      line against the account.  It is written only by the posting engine's
      server-side UPDATE; ORM writes are refused by db/immutability.py.

Failure modes:
    - IntegrityError on duplicate (company_id, code).
    - ImmutabilityViolationError when current_balance is set through the ORM.
"""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from posting_kernel.db.base import TrackedBase, UUIDString


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class Account(TrackedBase):
    """
    Chart of accounts entry -- a single node in the account tree.

    Contract:
        Accounts belong to one company.  parent_id, when set, points at an
        account of the same company (checked by ChartOfAccountsService).
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("company_id", "code", name="uq_account_company_code"),
        Index("idx_account_company", "company_id"),
        Index("idx_account_parent", "parent_id"),
    )

    # Owning company
    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    # Human-readable account code
    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    account_type: Mapped[AccountType] = mapped_column(
        String(20),
        nullable=False,
    )

    # Reporting group (e.g. "current_assets", "direct_income")
    account_group: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    # Parent account in the tree
    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=True,
    )

    # Signed running total of debit - credit
    current_balance: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    # Whether free-form journal entries may post here
    allow_manual_entry: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"
