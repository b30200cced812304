"""
Base types for document posting rules.

A posting rule turns a business document (invoice, bill, payment, payroll
run, stock adjustment) into the balanced line set of a PostingRequest.
Account selection goes through an explicit AccountRoleMapping resolved
once per company, so a missing mapping fails when the request is built
instead of silently dropping a line.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Generic, Iterable, Mapping, TypeVar
from uuid import UUID

from posting_kernel.domain.dtos import EntryType, PostingLine, PostingRequest, to_decimal
from posting_kernel.exceptions import MissingAccountRoleError, RoleMappingCompanyMismatchError


class AccountRole(str, Enum):
    """Semantic account roles used by the document posting rules."""

    ACCOUNTS_RECEIVABLE = "accounts_receivable"
    SALES_REVENUE = "sales_revenue"
    OUTPUT_VAT = "output_vat"
    INVENTORY = "inventory"
    COST_OF_GOODS_SOLD = "cost_of_goods_sold"
    ACCOUNTS_PAYABLE = "accounts_payable"
    INPUT_VAT = "input_vat"
    BANK = "bank"
    CASH = "cash"
    PAYROLL_EXPENSE = "payroll_expense"
    PAYROLL_TAX_PAYABLE = "payroll_tax_payable"
    STOCK_ADJUSTMENT = "stock_adjustment"
    CUSTOMER_ADVANCE = "customer_advance"


class PaymentMethod(str, Enum):
    CASH = "cash"
    BANK = "bank"

    @property
    def account_role(self) -> AccountRole:
        return AccountRole.CASH if self is PaymentMethod.CASH else AccountRole.BANK


@dataclass(frozen=True)
class AccountRoleMapping:
    """
    Validated account-role -> account id bindings for one company.

    Built once per company and passed by value into posting rules.
    """

    company_id: UUID
    accounts: Mapping[AccountRole, UUID] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "accounts",
            {AccountRole(role): account_id for role, account_id in self.accounts.items()},
        )

    def account_for(self, role: AccountRole, rule: str | None = None) -> UUID:
        try:
            return self.accounts[role]
        except KeyError:
            raise MissingAccountRoleError(role.value, rule) from None

    def missing(self, roles: Iterable[AccountRole]) -> tuple[AccountRole, ...]:
        return tuple(role for role in roles if role not in self.accounts)

    def require(self, roles: Iterable[AccountRole], rule: str | None = None) -> None:
        """Raise MissingAccountRoleError for the first unmapped role."""
        missing = self.missing(roles)
        if missing:
            raise MissingAccountRoleError(missing[0].value, rule)


@dataclass(frozen=True)
class DocumentHeader:
    """Identity of the business document being posted."""

    company_id: UUID
    source_doc_id: str
    source_doc_number: str
    posting_date: date
    description: str
    branch_id: UUID | None = None
    actor_id: UUID | None = None


DocumentT = TypeVar("DocumentT")


class BasePostingRule(ABC, Generic[DocumentT]):
    """
    Abstract base class for document posting rules.

    Subclasses declare the source document type and the roles they may
    use, and compute lines from a document.  Rules are stateless.
    """

    source_doc_type: str = ""
    required_roles: tuple[AccountRole, ...] = ()

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def compute_lines(
        self, document: DocumentT, mapping: AccountRoleMapping
    ) -> list[PostingLine]:
        ...

    def header_of(self, document: Any) -> DocumentHeader:
        return document.header

    def source_number(self, document: Any) -> str:
        return self.header_of(document).source_doc_number

    def build_request(
        self, document: DocumentT, mapping: AccountRoleMapping
    ) -> PostingRequest:
        header = self.header_of(document)
        if header.company_id != mapping.company_id:
            raise RoleMappingCompanyMismatchError(
                str(mapping.company_id), str(header.company_id)
            )
        mapping.require(self.required_roles, self.name)
        return PostingRequest(
            company_id=header.company_id,
            source_doc_type=self.source_doc_type,
            source_doc_id=header.source_doc_id,
            source_doc_number=self.source_number(document),
            posting_date=header.posting_date,
            description=header.description,
            lines=tuple(self.compute_lines(document, mapping)),
            branch_id=header.branch_id,
            entry_type=EntryType.SYSTEM,
            actor_id=header.actor_id,
        )

    def _line(
        self,
        mapping: AccountRoleMapping,
        role: AccountRole,
        debit: Decimal | int | str = 0,
        credit: Decimal | int | str = 0,
        description: str | None = None,
    ) -> PostingLine:
        return PostingLine(
            account_id=mapping.account_for(role, self.name),
            debit=to_decimal(debit),
            credit=to_decimal(credit),
            description=description,
        )
