"""Tests for PostingValidator against an in-memory account lookup."""

from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from posting_kernel.domain.dtos import AccountView, EntryType, PostingLine
from posting_kernel.domain.posting_validator import PostingValidator, error_to_exception
from posting_kernel.exceptions import (
    EmptyEntryError,
    InvalidLineAmountError,
    ManualEntryForbiddenError,
    UnbalancedEntryError,
    UnknownAccountError,
)

COMPANY = uuid4()


class FakeAccounts:
    """Dictionary-backed AccountLookup."""

    def __init__(self):
        self.accounts: dict[UUID, AccountView] = {}

    def add(self, code, manual=True, active=True, company_id=COMPANY) -> UUID:
        account_id = uuid4()
        self.accounts[account_id] = AccountView(
            id=account_id,
            company_id=company_id,
            code=code,
            name=f"Account {code}",
            account_type="asset",
            account_group=None,
            parent_id=None,
            allow_manual_entry=manual,
            is_active=active,
        )
        return account_id

    def get_account(self, company_id, account_id):
        account = self.accounts.get(account_id)
        if account is None or account.company_id != company_id:
            return None
        return account


@pytest.fixture
def accounts():
    return FakeAccounts()


@pytest.fixture
def validator(accounts):
    return PostingValidator(accounts)


def dr(account_id, amount):
    return PostingLine(account_id, debit=Decimal(str(amount)))


def cr(account_id, amount):
    return PostingLine(account_id, credit=Decimal(str(amount)))


class TestBalance:

    def test_balanced(self, validator, accounts):
        cash, sales = accounts.add("1110"), accounts.add("4100")
        assert validator.validate(COMPANY, [dr(cash, 100), cr(sales, 100)])

    def test_unbalanced(self, validator, accounts):
        ar, sales = accounts.add("1200"), accounts.add("4100")

        result = validator.validate(COMPANY, [dr(ar, 100), cr(sales, 90)])

        assert not result
        assert result.first_error.code == UnbalancedEntryError.code
        assert result.first_error.details == {"total_debit": "100", "total_credit": "90"}

    @pytest.mark.parametrize("credit,ok", [("99.99", True), ("100.01", True), ("99.98", False)])
    def test_tolerance_boundary(self, validator, accounts, credit, ok):
        cash, sales = accounts.add("1110"), accounts.add("4100")
        assert bool(validator.validate(COMPANY, [dr(cash, 100), cr(sales, credit)])) is ok

    def test_custom_tolerance(self, accounts):
        strict = PostingValidator(accounts, tolerance=Decimal("0"))
        cash, sales = accounts.add("1110"), accounts.add("4100")
        assert not strict.validate(COMPANY, [dr(cash, "100.01"), cr(sales, 100)])


class TestLineChecks:

    def test_empty(self, validator):
        result = validator.validate(COMPANY, [])
        assert result.first_error.code == EmptyEntryError.code

    def test_negative_amount(self, validator, accounts):
        cash = accounts.add("1110")
        result = validator.validate(COMPANY, [dr(cash, -5), dr(cash, 5)])
        assert result.first_error.code == InvalidLineAmountError.code
        assert result.first_error.details["line_number"] == 1

    def test_both_sides(self, validator, accounts):
        cash = accounts.add("1110")
        line = PostingLine(cash, debit=Decimal("5"), credit=Decimal("5"))
        result = validator.validate(COMPANY, [line])
        assert "both" in result.first_error.message

    def test_amount_errors_come_before_balance(self, validator, accounts):
        cash = accounts.add("1110")
        result = validator.validate(COMPANY, [dr(cash, -5)])
        assert result.first_error.code == InvalidLineAmountError.code


class TestAccountChecks:

    def test_unknown_account(self, validator, accounts):
        cash = accounts.add("1110")
        result = validator.validate(COMPANY, [dr(cash, 10), cr(uuid4(), 10)])
        assert result.first_error.code == UnknownAccountError.code
        assert result.first_error.field == "lines[1].account_id"

    def test_other_company(self, validator, accounts):
        cash, sales = accounts.add("1110"), accounts.add("4100")
        result = validator.validate(uuid4(), [dr(cash, 10), cr(sales, 10)])
        assert {e.code for e in result.errors} == {UnknownAccountError.code}

    def test_inactive_account(self, validator, accounts):
        cash, old = accounts.add("1110"), accounts.add("5900", active=False)
        result = validator.validate(COMPANY, [dr(old, 10), cr(cash, 10)])
        assert result.first_error.details["reason"] == "inactive"

    def test_manual_entry_forbidden(self, validator, accounts):
        cash, ar = accounts.add("1110"), accounts.add("1200", manual=False)

        assert validator.validate(COMPANY, [dr(ar, 10), cr(cash, 10)], EntryType.SYSTEM)
        result = validator.validate(COMPANY, [dr(ar, 10), cr(cash, 10)], EntryType.MANUAL)

        assert result.first_error.code == ManualEntryForbiddenError.code

    def test_unknown_outranks_manual(self, validator, accounts):
        ar = accounts.add("1200", manual=False)
        result = validator.validate(COMPANY, [dr(ar, 10), cr(uuid4(), 10)], EntryType.MANUAL)
        assert [e.code for e in result.errors] == [UnknownAccountError.code]


class TestAssertValid:

    def test_raises_typed_error(self, validator, accounts):
        ar, sales = accounts.add("1200"), accounts.add("4100")
        with pytest.raises(UnbalancedEntryError) as exc_info:
            validator.assert_valid(COMPANY, [dr(ar, 100), cr(sales, 90)])
        assert exc_info.value.total_debit == "100"

    def test_idempotent(self, validator, accounts):
        cash, sales = accounts.add("1110"), accounts.add("4100")
        lines = [dr(cash, 10), cr(sales, 15)]
        assert validator.validate(COMPANY, lines) == validator.validate(COMPANY, lines)

    def test_error_mapping(self, validator):
        error = validator.validate(COMPANY, []).first_error
        assert isinstance(error_to_exception(error), EmptyEntryError)
