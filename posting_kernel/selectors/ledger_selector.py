"""
Module: posting_kernel.selectors.ledger_selector
Responsibility: Read-only ledger queries: balances derived from journal
    lines, the trial balance, and a reconciliation of each account's stored
    running balance against its lines.
Architecture position: Kernel > Selectors.  May import from models/ and
    selectors/base.py.

Invariants checked:
    - Every account's current_balance equals the sum of (debit - credit)
      over its posted lines.
    - Total debits equal total credits over the whole ledger.

Failure modes:
    - Returns zero balances when nothing has been posted.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from posting_kernel.models.account import Account
from posting_kernel.models.journal import JournalEntry, JournalLine
from posting_kernel.selectors.base import BaseSelector

_ZERO = Decimal("0")


@dataclass
class AccountBalance:
    """Balance of one account computed from its lines."""

    account_id: UUID
    debit_total: Decimal
    credit_total: Decimal
    line_count: int

    @property
    def balance(self) -> Decimal:
        """Net balance (debits - credits)."""
        return self.debit_total - self.credit_total


@dataclass
class TrialBalanceRow:
    """A single row in a trial balance report."""

    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    debit_total: Decimal
    credit_total: Decimal

    @property
    def balance(self) -> Decimal:
        return self.debit_total - self.credit_total


@dataclass
class BalanceDrift:
    """An account whose stored balance disagrees with its lines."""

    account_id: UUID
    account_code: str
    stored_balance: Decimal
    computed_balance: Decimal

    @property
    def difference(self) -> Decimal:
        return self.stored_balance - self.computed_balance


class LedgerSelector(BaseSelector[JournalLine]):
    """
    Ledger queries over posted journal lines.

    All balances use the debit-minus-credit sign convention.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def account_balance(
        self,
        company_id: UUID,
        account_id: UUID,
        as_of_date: date | None = None,
    ) -> AccountBalance:
        stmt = (
            select(
                func.coalesce(func.sum(JournalLine.debit), 0),
                func.coalesce(func.sum(JournalLine.credit), 0),
                func.count(JournalLine.id),
            )
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(
                JournalEntry.company_id == company_id,
                JournalLine.account_id == account_id,
            )
        )
        if as_of_date is not None:
            stmt = stmt.where(JournalEntry.journal_date <= as_of_date)
        debit, credit, count = self.session.execute(stmt).one()
        return AccountBalance(
            account_id=account_id,
            debit_total=Decimal(str(debit)),
            credit_total=Decimal(str(credit)),
            line_count=count,
        )

    def trial_balance(
        self, company_id: UUID, as_of_date: date | None = None
    ) -> list[TrialBalanceRow]:
        """Per-account debit and credit totals, ordered by account code."""
        stmt = (
            select(
                Account.id,
                Account.code,
                Account.name,
                Account.account_type,
                func.coalesce(func.sum(JournalLine.debit), 0),
                func.coalesce(func.sum(JournalLine.credit), 0),
            )
            .join(JournalLine, JournalLine.account_id == Account.id)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(
                Account.company_id == company_id,
                JournalEntry.company_id == company_id,
            )
            .group_by(Account.id, Account.code, Account.name, Account.account_type)
            .order_by(Account.code)
        )
        if as_of_date is not None:
            stmt = stmt.where(JournalEntry.journal_date <= as_of_date)
        return [
            TrialBalanceRow(
                account_id=row[0],
                account_code=row[1],
                account_name=row[2],
                account_type=row[3],
                debit_total=Decimal(str(row[4])),
                credit_total=Decimal(str(row[5])),
            )
            for row in self.session.execute(stmt).all()
        ]

    def total_debits_credits(self, company_id: UUID) -> tuple[Decimal, Decimal]:
        debit, credit = self.session.execute(
            select(
                func.coalesce(func.sum(JournalLine.debit), 0),
                func.coalesce(func.sum(JournalLine.credit), 0),
            )
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(JournalEntry.company_id == company_id)
        ).one()
        return Decimal(str(debit)), Decimal(str(credit))

    def stored_balance(self, company_id: UUID, account_id: UUID) -> Decimal:
        """current_balance as the database holds it right now."""
        value = self.session.execute(
            select(Account.current_balance).where(
                Account.company_id == company_id,
                Account.id == account_id,
            )
        ).scalar_one()
        return Decimal(str(value))

    def balance_drift(self, company_id: UUID) -> list[BalanceDrift]:
        """Accounts whose running balance disagrees with their lines."""
        computed = dict(
            self.session.execute(
                select(
                    JournalLine.account_id,
                    func.sum(JournalLine.debit) - func.sum(JournalLine.credit),
                )
                .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
                .where(JournalEntry.company_id == company_id)
                .group_by(JournalLine.account_id)
            ).all()
        )
        drift = []
        accounts = self.session.execute(
            select(Account.id, Account.code, Account.current_balance)
            .where(Account.company_id == company_id)
            .order_by(Account.code)
        ).all()
        for account_id, code, stored in accounts:
            stored_value = Decimal(str(stored if stored is not None else 0))
            computed_value = Decimal(str(computed.get(account_id, 0)))
            if stored_value != computed_value:
                drift.append(BalanceDrift(account_id, code, stored_value, computed_value))
        return drift
