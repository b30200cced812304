"""
Module: posting_kernel.selectors.journal_selector
Responsibility: Read-only access to journal entries and their lines.
Architecture position: Kernel > Selectors.  May import from models/ and
    selectors/base.py.

Invariants enforced:
    - Lines are returned in line_number order (caller order at posting time).
    - ``is_reversed`` is derived from the reversal row, never stored.

Failure modes:
    - Returns None or an empty list when nothing matches.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, aliased

from posting_kernel.models.journal import JournalEntry, JournalEntryStatus, JournalLine
from posting_kernel.selectors.base import BaseSelector


@dataclass
class JournalLineDTO:
    """Data transfer object for a journal line."""

    id: UUID
    line_number: int
    account_id: UUID
    debit: Decimal
    credit: Decimal
    description: str | None
    cost_center: str | None
    project: str | None

    @property
    def net_amount(self) -> Decimal:
        return self.debit - self.credit


@dataclass
class JournalDTO:
    """Data transfer object for a journal entry."""

    id: UUID
    company_id: UUID
    journal_number: str
    journal_date: date
    description: str
    source_doc_type: str
    source_doc_id: str | None
    source_doc_number: str | None
    total_debit: Decimal
    total_credit: Decimal
    status: str
    entry_type: str
    is_reversal: bool
    reversal_of_id: UUID | None
    reversed_by_id: UUID | None
    posted_at: datetime
    lines: list[JournalLineDTO]

    @property
    def is_reversed(self) -> bool:
        return self.reversed_by_id is not None


class JournalSelector(BaseSelector[JournalEntry]):
    """Queries over journal entries."""

    def __init__(self, session: Session):
        super().__init__(session)

    def get(self, journal_id: UUID) -> JournalDTO | None:
        entry = self.session.get(JournalEntry, journal_id)
        return self._to_dto(entry) if entry is not None else None

    def get_by_number(self, company_id: UUID, journal_number: str) -> JournalDTO | None:
        entry = self.session.execute(
            select(JournalEntry).where(
                JournalEntry.company_id == company_id,
                JournalEntry.journal_number == journal_number,
            )
        ).scalar_one_or_none()
        return self._to_dto(entry) if entry is not None else None

    def find_by_source(
        self, company_id: UUID, source_doc_type: str, source_doc_id: str
    ) -> list[JournalDTO]:
        """Entries posted for a business document, oldest first."""
        entries = self.session.execute(
            select(JournalEntry)
            .where(
                JournalEntry.company_id == company_id,
                JournalEntry.source_doc_type == source_doc_type,
                JournalEntry.source_doc_id == str(source_doc_id),
            )
            .order_by(JournalEntry.posted_at, JournalEntry.journal_number)
        ).scalars().all()
        return [self._to_dto(e) for e in entries]

    def reversal_of(self, journal_id: UUID) -> JournalDTO | None:
        """The entry that reverses ``journal_id``, if any."""
        entry = self.session.execute(
            select(JournalEntry).where(JournalEntry.reversal_of_id == journal_id)
        ).scalar_one_or_none()
        return self._to_dto(entry) if entry is not None else None

    def list_entries(
        self,
        company_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
        include_reversals: bool = True,
    ) -> list[JournalDTO]:
        stmt = select(JournalEntry).where(JournalEntry.company_id == company_id)
        if start_date is not None:
            stmt = stmt.where(JournalEntry.journal_date >= start_date)
        if end_date is not None:
            stmt = stmt.where(JournalEntry.journal_date <= end_date)
        if not include_reversals:
            stmt = stmt.where(JournalEntry.is_reversal.is_(False))
        entries = self.session.execute(
            stmt.order_by(JournalEntry.journal_date, JournalEntry.journal_number)
        ).scalars().all()
        return [self._to_dto(e) for e in entries]

    def _reversed_by(self, journal_id: UUID) -> UUID | None:
        reversal = aliased(JournalEntry)
        return self.session.execute(
            select(reversal.id).where(reversal.reversal_of_id == journal_id)
        ).scalar_one_or_none()

    def _lines(self, journal_id: UUID) -> list[JournalLine]:
        return list(
            self.session.execute(
                select(JournalLine)
                .where(JournalLine.journal_entry_id == journal_id)
                .order_by(JournalLine.line_number)
            ).scalars().all()
        )

    def _to_dto(self, entry: JournalEntry) -> JournalDTO:
        lines = [
            JournalLineDTO(
                id=line.id,
                line_number=line.line_number,
                account_id=line.account_id,
                debit=line.debit,
                credit=line.credit,
                description=line.description,
                cost_center=line.cost_center,
                project=line.project,
            )
            for line in self._lines(entry.id)
        ]
        return JournalDTO(
            id=entry.id,
            company_id=entry.company_id,
            journal_number=entry.journal_number,
            journal_date=entry.journal_date,
            description=entry.description,
            source_doc_type=entry.source_doc_type,
            source_doc_id=entry.source_doc_id,
            source_doc_number=entry.source_doc_number,
            total_debit=entry.total_debit,
            total_credit=entry.total_credit,
            status=JournalEntryStatus(entry.status).value,
            entry_type=entry.entry_type,
            is_reversal=entry.is_reversal,
            reversal_of_id=entry.reversal_of_id,
            reversed_by_id=self._reversed_by(entry.id),
            posted_at=entry.posted_at,
            lines=lines,
        )
