"""
ChartOfAccountsService -- the company's catalogue of postable accounts.

Responsibility:
    Creates and maintains account records and exposes the read interface
    ``get_account(company_id, account_id)`` used by the posting validator.

Architecture position:
    Kernel > Services.  Consumed by GLPostingService (lookups) and the
    configuration bridges (seeding).

Invariants enforced:
    - Account codes are unique within a company.
    - A parent account belongs to the same company.
    - current_balance is never written here; a new account starts at zero.

Failure modes:
    - DuplicateAccountCodeError on a repeated code.
    - AccountNotFoundError for unknown ids or a parent in another company.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from posting_kernel.db.base import SYSTEM_ACTOR_ID
from posting_kernel.domain.clock import Clock
from posting_kernel.domain.dtos import ZERO, AccountView
from posting_kernel.exceptions import AccountNotFoundError, DuplicateAccountCodeError
from posting_kernel.logging_config import get_logger
from posting_kernel.models.account import Account, AccountType
from posting_kernel.services.base import BaseService

logger = get_logger("services.chart_of_accounts")


def account_view(account: Account) -> AccountView:
    return AccountView(
        id=account.id,
        company_id=account.company_id,
        code=account.code,
        name=account.name,
        account_type=AccountType(account.account_type).value,
        account_group=account.account_group,
        parent_id=account.parent_id,
        allow_manual_entry=account.allow_manual_entry,
        is_active=account.is_active,
        current_balance=account.current_balance if account.current_balance is not None else ZERO,
    )


class ChartOfAccountsService(BaseService):
    """
    Contract:
        Write operations flush; lookups return AccountView snapshots, never
        ORM rows, so callers cannot mutate accounts by accident.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    def create_account(
        self,
        company_id: UUID,
        code: str,
        name: str,
        account_type: AccountType | str,
        account_group: str | None = None,
        parent_id: UUID | None = None,
        allow_manual_entry: bool = True,
        actor_id: UUID | None = None,
    ) -> AccountView:
        """
        Add an account to the company's chart.

        Raises:
            DuplicateAccountCodeError: ``code`` already exists for the company.
            AccountNotFoundError: ``parent_id`` is unknown or foreign.
            ValueError: ``account_type`` is not a known type.
        """
        account_type = AccountType(account_type)

        existing = self._session.execute(
            select(Account.id).where(
                Account.company_id == company_id,
                Account.code == code,
            )
        ).scalar_one_or_none()
        if existing is not None:
            raise DuplicateAccountCodeError(str(company_id), code)

        if parent_id is not None:
            parent = self._load(company_id, parent_id)
            if parent is None:
                raise AccountNotFoundError(str(parent_id))

        account = Account(
            company_id=company_id,
            code=code,
            name=name,
            account_type=account_type.value,
            account_group=account_group,
            parent_id=parent_id,
            current_balance=ZERO,
            allow_manual_entry=allow_manual_entry,
            is_active=True,
            created_by_id=actor_id or SYSTEM_ACTOR_ID,
        )
        self._session.add(account)
        self._session.flush()

        logger.info(
            "account_created",
            extra={
                "company_id": str(company_id),
                "account_id": str(account.id),
                "account_code": code,
                "account_type": account_type.value,
            },
        )
        return account_view(account)

    def get_account(self, company_id: UUID, account_id: UUID) -> AccountView | None:
        """Account of ``company_id`` with ``account_id``, or None."""
        account = self._load(company_id, account_id)
        return account_view(account) if account is not None else None

    def get_by_code(self, company_id: UUID, code: str) -> AccountView | None:
        account = self._session.execute(
            select(Account).where(
                Account.company_id == company_id,
                Account.code == code,
            )
        ).scalar_one_or_none()
        return account_view(account) if account is not None else None

    def list_accounts(
        self, company_id: UUID, include_inactive: bool = False
    ) -> list[AccountView]:
        stmt = select(Account).where(Account.company_id == company_id)
        if not include_inactive:
            stmt = stmt.where(Account.is_active.is_(True))
        rows = self._session.execute(stmt.order_by(Account.code)).scalars().all()
        return [account_view(a) for a in rows]

    def children(self, company_id: UUID, parent_id: UUID) -> list[AccountView]:
        rows = self._session.execute(
            select(Account)
            .where(Account.company_id == company_id, Account.parent_id == parent_id)
            .order_by(Account.code)
        ).scalars().all()
        return [account_view(a) for a in rows]

    def deactivate(
        self, company_id: UUID, account_id: UUID, actor_id: UUID | None = None
    ) -> AccountView:
        """Stop new postings to an account.  History is unaffected."""
        account = self._require(company_id, account_id)
        account.is_active = False
        account.updated_by_id = actor_id or SYSTEM_ACTOR_ID
        self._session.flush()
        logger.info(
            "account_deactivated",
            extra={"company_id": str(company_id), "account_code": account.code},
        )
        return account_view(account)

    def set_manual_entry(
        self,
        company_id: UUID,
        account_id: UUID,
        allowed: bool,
        actor_id: UUID | None = None,
    ) -> AccountView:
        account = self._require(company_id, account_id)
        account.allow_manual_entry = allowed
        account.updated_by_id = actor_id or SYSTEM_ACTOR_ID
        self._session.flush()
        return account_view(account)

    def _load(self, company_id: UUID, account_id: UUID) -> Account | None:
        return self._session.execute(
            select(Account).where(
                Account.id == account_id,
                Account.company_id == company_id,
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _require(self, company_id: UUID, account_id: UUID) -> Account:
        account = self._load(company_id, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account
