"""
Module: posting_kernel.models.journal
Responsibility: ORM persistence for journal entries and journal lines.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - journal_number is unique within a company.
    - An entry is reversed at most once (unique reversal_of_id).
    - (journal_entry_id, line_number) is unique; line_number is the
      authoritative read order.
    - Entries change only their status after insert; lines never change
      (ORM listeners in db/immutability.py).

Failure modes:
    - IntegrityError on duplicate journal number or second reversal.
    - ImmutabilityViolationError on UPDATE/DELETE of posted rows.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from posting_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from posting_kernel.models.account import Account


class JournalEntryStatus(str, Enum):
    """Status of a journal entry.  Entries are written already posted."""

    POSTED = "posted"


class JournalEntry(TrackedBase):
    """
    Journal entry header -- one balanced accounting event.

    Contract:
        total_debit == total_credit within the posting tolerance.  A reversal
        is a separate entry with is_reversal=True and reversal_of_id set; the
        original is never touched.
    """

    __tablename__ = "journal_entries"

    __table_args__ = (
        UniqueConstraint("company_id", "journal_number", name="uq_journal_company_number"),
        UniqueConstraint("reversal_of_id", name="uq_journal_reversal_of"),
        Index("idx_journal_company_date", "company_id", "journal_date"),
        Index("idx_journal_source_doc", "source_doc_type", "source_doc_id"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    # Issued by the company's JV number series
    journal_number: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    journal_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    description: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )

    # Back-link to the originating business document
    source_doc_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    source_doc_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    source_doc_number: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    total_debit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    total_credit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    status: Mapped[JournalEntryStatus] = mapped_column(
        String(20),
        nullable=False,
        default=JournalEntryStatus.POSTED,
    )

    # "system" or "manual" (posting_kernel.domain.dtos.EntryType)
    entry_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="system",
    )

    is_reversal: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    # Entry this one reverses
    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    branch_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    posted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="entry",
        cascade="save-update, merge",
        lazy="selectin",
        order_by="JournalLine.line_number",
    )

    reversal_of: Mapped["JournalEntry | None"] = relationship(
        remote_side="JournalEntry.id",
        foreign_keys=[reversal_of_id],
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.journal_number} status={self.status}>"

    @property
    def is_balanced(self) -> bool:
        """Read-side check that stored totals agree to the cent."""
        return abs(self.total_debit - self.total_credit) <= Decimal("0.01")


class JournalLine(TrackedBase):
    """
    Individual line of a journal entry.

    Contract:
        debit >= 0 and credit >= 0; at most one of them is non-zero.  Both
        zero is accepted as a placeholder line.
    """

    __tablename__ = "journal_lines"

    __table_args__ = (
        UniqueConstraint("journal_entry_id", "line_number", name="uq_line_entry_number"),
        Index("idx_line_account", "account_id"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    # 1-based, caller-supplied order
    line_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    debit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    credit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    cost_center: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    project: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    entry: Mapped["JournalEntry"] = relationship(
        back_populates="lines",
    )

    account: Mapped["Account"] = relationship()

    def __repr__(self) -> str:
        return f"<JournalLine #{self.line_number} Dr {self.debit} Cr {self.credit}>"

    @property
    def net_amount(self) -> Decimal:
        """Effect on the account balance (debit - credit)."""
        return self.debit - self.credit
