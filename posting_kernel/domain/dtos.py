"""
Data Transfer Objects for the posting kernel.

Immutable value objects passed between layers: posting requests and their
outcomes, validation results, and read-only account views.  Nothing in this
module touches the database.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

if TYPE_CHECKING:
    from posting_kernel.exceptions import PostingKernelError

ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """Coerce int/str/Decimal amounts to Decimal.  Floats go through str()."""
    if isinstance(value, Decimal):
        return value
    if value is None:
        return ZERO
    return Decimal(str(value))


class EntryType(str, Enum):
    """Origin of a posting.

    MANUAL postings are free-form journal vouchers and may only touch
    accounts that allow manual entry.
    """

    SYSTEM = "system"
    MANUAL = "manual"


@dataclass(frozen=True)
class PostingLine:
    """
    One proposed ledger line.

    Exactly one of debit/credit is expected to be non-zero; both zero is a
    placeholder line.  Amounts are coerced to Decimal.
    """

    account_id: UUID
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    description: str | None = None
    cost_center: str | None = None
    project: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "debit", to_decimal(self.debit))
        object.__setattr__(self, "credit", to_decimal(self.credit))

    @property
    def net_amount(self) -> Decimal:
        return self.debit - self.credit

    def mirrored(self) -> PostingLine:
        """Same line with debit and credit swapped."""
        return PostingLine(
            account_id=self.account_id,
            debit=self.credit,
            credit=self.debit,
            description=self.description,
            cost_center=self.cost_center,
            project=self.project,
        )


@dataclass(frozen=True)
class PostingRequest:
    """
    Everything the GL posting engine needs to write one journal entry.

    Contract:
        ``lines`` keeps caller order; it becomes line_number 1..n.
        ``is_reversal``/``reversal_of_id`` are set by the reversal engine.
    """

    company_id: UUID
    source_doc_type: str
    posting_date: date
    description: str
    lines: tuple[PostingLine, ...]
    source_doc_id: str | None = None
    source_doc_number: str | None = None
    branch_id: UUID | None = None
    entry_type: EntryType = EntryType.SYSTEM
    actor_id: UUID | None = None
    is_reversal: bool = False
    reversal_of_id: UUID | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.lines, tuple):
            object.__setattr__(self, "lines", tuple(self.lines))
        if self.source_doc_id is not None and not isinstance(self.source_doc_id, str):
            object.__setattr__(self, "source_doc_id", str(self.source_doc_id))

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit for line in self.lines), ZERO)

    @property
    def total_credit(self) -> Decimal:
        return sum((line.credit for line in self.lines), ZERO)


@dataclass(frozen=True)
class PostingReceipt:
    """Outcome of a successful posting."""

    journal_id: UUID
    journal_number: str
    total_debit: Decimal
    total_credit: Decimal
    is_reversal: bool = False
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class PostingResult:
    """
    Boundary response for a posting call.

    Mirrors ``{success, journalId?, journalNumber?, error?}``; error_code is
    the ``code`` of the raised PostingKernelError.
    """

    success: bool
    journal_id: UUID | None = None
    journal_number: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    warnings: tuple[str, ...] = ()

    @classmethod
    def ok(cls, receipt: PostingReceipt) -> PostingResult:
        return cls(
            success=True,
            journal_id=receipt.journal_id,
            journal_number=receipt.journal_number,
            warnings=receipt.warnings,
        )

    @classmethod
    def from_error(cls, error: PostingKernelError) -> PostingResult:
        return cls(success=False, error_code=error.code, error_message=str(error))


@dataclass(frozen=True)
class AccountView:
    """Read-only snapshot of a chart-of-accounts entry."""

    id: UUID
    company_id: UUID
    code: str
    name: str
    account_type: str
    account_group: str | None
    parent_id: UUID | None
    allow_manual_entry: bool
    is_active: bool
    current_balance: Decimal = ZERO


@dataclass(frozen=True)
class ValidationError:
    """
    A single validation error.

    Carries a machine-readable code (the same code as the matching
    exception class), a message, an optional field path and details.
    """

    code: str
    message: str
    field: str | None = None
    details: dict[str, Any] | None = None


@dataclass(frozen=True)
class ValidationResult:
    """
    Result of validation.

    ``bool(result) == result.is_valid``.
    """

    is_valid: bool
    errors: tuple[ValidationError, ...] = field(default_factory=tuple)

    @classmethod
    def success(cls) -> ValidationResult:
        return cls(is_valid=True, errors=())

    @classmethod
    def failure(cls, *errors: ValidationError) -> ValidationResult:
        return cls(is_valid=False, errors=tuple(errors))

    @property
    def first_error(self) -> ValidationError | None:
        return self.errors[0] if self.errors else None

    def __bool__(self) -> bool:
        return self.is_valid
