"""
PostingValidator -- pure checks on a proposed line set.

Responsibility:
    Decides whether a set of ledger lines may be posted for a company.
    Reads accounts through an injected lookup and never writes.

Checks, in order (the first failing stage is reported):
    1. the line set is non-empty;
    2. every line has non-negative amounts and at most one non-zero side;
    3. sum(debit) - sum(credit) is within the tolerance of zero;
    4. every account exists in the company's chart and is active;
    5. manual entries only touch accounts with allow_manual_entry.

Calling it twice gives the same answer; it is safe to call speculatively.
"""

from decimal import Decimal
from typing import Iterable, Protocol
from uuid import UUID

from posting_kernel.domain.dtos import (
    ZERO,
    AccountView,
    EntryType,
    PostingLine,
    ValidationError,
    ValidationResult,
)
from posting_kernel.exceptions import (
    EmptyEntryError,
    InvalidLineAmountError,
    ManualEntryForbiddenError,
    PostingError,
    UnbalancedEntryError,
    UnknownAccountError,
)

DEFAULT_BALANCE_TOLERANCE = Decimal("0.01")


class AccountLookup(Protocol):
    """Read interface onto the chart of accounts."""

    def get_account(self, company_id: UUID, account_id: UUID) -> AccountView | None:
        ...


class PostingValidator:
    """
    Contract:
        ``validate`` returns a ValidationResult whose error codes equal the
        ``code`` of the matching PostingError; ``assert_valid`` raises that
        PostingError for the first error.
    """

    def __init__(
        self,
        accounts: AccountLookup,
        tolerance: Decimal = DEFAULT_BALANCE_TOLERANCE,
    ):
        self._accounts = accounts
        self._tolerance = tolerance

    @property
    def tolerance(self) -> Decimal:
        return self._tolerance

    def validate(
        self,
        company_id: UUID,
        lines: Iterable[PostingLine],
        entry_type: EntryType = EntryType.SYSTEM,
    ) -> ValidationResult:
        lines = tuple(lines)

        if not lines:
            return ValidationResult.failure(ValidationError(
                code=EmptyEntryError.code,
                message="Journal entry must contain at least one line",
                field="lines",
            ))

        amount_errors = self._check_amounts(lines)
        if amount_errors:
            return ValidationResult.failure(*amount_errors)

        total_debit = sum((line.debit for line in lines), ZERO)
        total_credit = sum((line.credit for line in lines), ZERO)
        if abs(total_debit - total_credit) > self._tolerance:
            return ValidationResult.failure(ValidationError(
                code=UnbalancedEntryError.code,
                message=f"Debits {total_debit} do not equal credits {total_credit}",
                field="lines",
                details={"total_debit": str(total_debit), "total_credit": str(total_credit)},
            ))

        account_errors = self._check_accounts(company_id, lines, entry_type)
        if account_errors:
            return ValidationResult.failure(*account_errors)

        return ValidationResult.success()

    def assert_valid(
        self,
        company_id: UUID,
        lines: Iterable[PostingLine],
        entry_type: EntryType = EntryType.SYSTEM,
    ) -> None:
        """Raise the typed PostingError for the first validation error."""
        result = self.validate(company_id, lines, entry_type)
        if not result.is_valid:
            raise error_to_exception(result.errors[0])

    def _check_amounts(self, lines: tuple[PostingLine, ...]) -> list[ValidationError]:
        errors = []
        for number, line in enumerate(lines, start=1):
            if line.debit < ZERO or line.credit < ZERO:
                reason = "amounts must not be negative"
            elif line.debit > ZERO and line.credit > ZERO:
                reason = "a line cannot carry both a debit and a credit"
            else:
                continue
            errors.append(ValidationError(
                code=InvalidLineAmountError.code,
                message=f"Line {number}: {reason}",
                field=f"lines[{number - 1}]",
                details={"line_number": number, "reason": reason},
            ))
        return errors

    def _check_accounts(
        self,
        company_id: UUID,
        lines: tuple[PostingLine, ...],
        entry_type: EntryType,
    ) -> list[ValidationError]:
        errors = []
        seen: dict[UUID, AccountView | None] = {}
        for index, line in enumerate(lines):
            if line.account_id not in seen:
                seen[line.account_id] = self._accounts.get_account(company_id, line.account_id)
            account = seen[line.account_id]

            if account is None:
                errors.append(ValidationError(
                    code=UnknownAccountError.code,
                    message=f"Account {line.account_id} not found",
                    field=f"lines[{index}].account_id",
                    details={"account": str(line.account_id), "reason": "not found"},
                ))
            elif not account.is_active:
                errors.append(ValidationError(
                    code=UnknownAccountError.code,
                    message=f"Account {account.code} is inactive",
                    field=f"lines[{index}].account_id",
                    details={"account": account.code, "reason": "inactive"},
                ))
            elif entry_type == EntryType.MANUAL and not account.allow_manual_entry:
                errors.append(ValidationError(
                    code=ManualEntryForbiddenError.code,
                    message=f"Account {account.code} does not allow manual entries",
                    field=f"lines[{index}].account_id",
                    details={"account_code": account.code},
                ))
        # Unknown accounts outrank manual-entry violations
        unknown = [e for e in errors if e.code == UnknownAccountError.code]
        return unknown or errors


def error_to_exception(error: ValidationError) -> PostingError:
    """Map a validation error back to its typed exception."""
    details = error.details or {}
    if error.code == EmptyEntryError.code:
        return EmptyEntryError()
    if error.code == InvalidLineAmountError.code:
        return InvalidLineAmountError(details["line_number"], details["reason"])
    if error.code == UnbalancedEntryError.code:
        return UnbalancedEntryError(details["total_debit"], details["total_credit"])
    if error.code == UnknownAccountError.code:
        return UnknownAccountError(details["account"], details["reason"])
    if error.code == ManualEntryForbiddenError.code:
        return ManualEntryForbiddenError(details["account_code"])
    return PostingError(error.message)
