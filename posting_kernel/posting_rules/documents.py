"""
Posting rules for the standard business documents.

    Document            Debit                          Credit
    ------------------  -----------------------------  -----------------------------
    Sales invoice       receivable (total)             revenue (subtotal), VAT (tax)
    Purchase bill       inventory (subtotal), VAT (tax) payable (total)
    Customer payment    bank/cash                      receivable
    Supplier payment    payable                        bank/cash
    Payroll run         payroll expense (gross)        bank (net), tax payable (deductions)
    Stock adjustment    inventory / adjustment         adjustment / inventory
    Advance receipt     bank/cash                      customer advance
    Advance allocation  customer advance               receivable

Tax and deduction lines are omitted when the amount is zero.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from posting_kernel.domain.dtos import ZERO, PostingRequest, to_decimal
from posting_kernel.posting_rules.base import (
    AccountRole,
    AccountRoleMapping,
    BasePostingRule,
    DocumentHeader,
    PaymentMethod,
)


@dataclass(frozen=True)
class SalesInvoice:
    header: DocumentHeader
    subtotal: Decimal
    tax: Decimal
    total: Decimal


@dataclass(frozen=True)
class PurchaseBill:
    header: DocumentHeader
    subtotal: Decimal
    tax: Decimal
    total: Decimal


@dataclass(frozen=True)
class Payment:
    """Customer receipt or supplier payment."""

    header: DocumentHeader
    amount: Decimal
    method: PaymentMethod = PaymentMethod.BANK


@dataclass(frozen=True)
class PayrollRun:
    header: DocumentHeader
    gross: Decimal
    net: Decimal
    deductions: Decimal = ZERO


@dataclass(frozen=True)
class StockAdjustment:
    """Signed valuation change: positive is a gain, negative a write-down."""

    header: DocumentHeader
    amount: Decimal


@dataclass(frozen=True)
class AdvanceAllocation:
    """Applies part of a customer advance to an open invoice."""

    header: DocumentHeader
    amount: Decimal


class SalesInvoiceRule(BasePostingRule[SalesInvoice]):
    source_doc_type = "sales_invoice"
    required_roles = (
        AccountRole.ACCOUNTS_RECEIVABLE,
        AccountRole.SALES_REVENUE,
        AccountRole.OUTPUT_VAT,
    )

    def compute_lines(self, document, mapping):
        number = document.header.source_doc_number
        lines = [
            self._line(mapping, AccountRole.ACCOUNTS_RECEIVABLE,
                       debit=document.total, description=f"Invoice {number}"),
            self._line(mapping, AccountRole.SALES_REVENUE,
                       credit=document.subtotal, description=f"Sales - {number}"),
        ]
        if to_decimal(document.tax) > ZERO:
            lines.append(self._line(mapping, AccountRole.OUTPUT_VAT,
                                    credit=document.tax, description=f"VAT - {number}"))
        return lines


class PurchaseBillRule(BasePostingRule[PurchaseBill]):
    source_doc_type = "purchase_bill"
    required_roles = (
        AccountRole.INVENTORY,
        AccountRole.INPUT_VAT,
        AccountRole.ACCOUNTS_PAYABLE,
    )

    def compute_lines(self, document, mapping):
        number = document.header.source_doc_number
        lines = [
            self._line(mapping, AccountRole.INVENTORY,
                       debit=document.subtotal, description=f"Purchase - {number}"),
        ]
        if to_decimal(document.tax) > ZERO:
            lines.append(self._line(mapping, AccountRole.INPUT_VAT,
                                    debit=document.tax, description=f"Input VAT - {number}"))
        lines.append(self._line(mapping, AccountRole.ACCOUNTS_PAYABLE,
                                credit=document.total, description=f"Bill {number}"))
        return lines


class CustomerPaymentRule(BasePostingRule[Payment]):
    source_doc_type = "customer_payment"
    required_roles = (AccountRole.ACCOUNTS_RECEIVABLE,)

    def compute_lines(self, document, mapping):
        number = document.header.source_doc_number
        return [
            self._line(mapping, document.method.account_role,
                       debit=document.amount, description=f"Receipt {number}"),
            self._line(mapping, AccountRole.ACCOUNTS_RECEIVABLE,
                       credit=document.amount, description=f"Receipt {number}"),
        ]


class SupplierPaymentRule(BasePostingRule[Payment]):
    source_doc_type = "supplier_payment"
    required_roles = (AccountRole.ACCOUNTS_PAYABLE,)

    def compute_lines(self, document, mapping):
        number = document.header.source_doc_number
        return [
            self._line(mapping, AccountRole.ACCOUNTS_PAYABLE,
                       debit=document.amount, description=f"Payment {number}"),
            self._line(mapping, document.method.account_role,
                       credit=document.amount, description=f"Payment {number}"),
        ]


class PayrollRule(BasePostingRule[PayrollRun]):
    source_doc_type = "payroll"
    required_roles = (
        AccountRole.PAYROLL_EXPENSE,
        AccountRole.BANK,
        AccountRole.PAYROLL_TAX_PAYABLE,
    )

    def compute_lines(self, document, mapping):
        number = document.header.source_doc_number
        lines = [
            self._line(mapping, AccountRole.PAYROLL_EXPENSE,
                       debit=document.gross, description=f"Salaries - {number}"),
            self._line(mapping, AccountRole.BANK,
                       credit=document.net, description=f"Net pay - {number}"),
        ]
        if to_decimal(document.deductions) > ZERO:
            lines.append(self._line(mapping, AccountRole.PAYROLL_TAX_PAYABLE,
                                    credit=document.deductions,
                                    description=f"Deductions - {number}"))
        return lines


class StockAdjustmentRule(BasePostingRule[StockAdjustment]):
    source_doc_type = "stock_adjustment"
    required_roles = (AccountRole.INVENTORY, AccountRole.STOCK_ADJUSTMENT)

    def compute_lines(self, document, mapping):
        amount = to_decimal(document.amount)
        if amount >= ZERO:
            debit_role, credit_role = AccountRole.INVENTORY, AccountRole.STOCK_ADJUSTMENT
        else:
            debit_role, credit_role = AccountRole.STOCK_ADJUSTMENT, AccountRole.INVENTORY
        value = abs(amount)
        return [
            self._line(mapping, debit_role, debit=value),
            self._line(mapping, credit_role, credit=value),
        ]


class AdvanceReceiptRule(BasePostingRule[Payment]):
    source_doc_type = "advance_receipt"
    required_roles = (AccountRole.CUSTOMER_ADVANCE,)

    def compute_lines(self, document, mapping):
        number = document.header.source_doc_number
        return [
            self._line(mapping, document.method.account_role,
                       debit=document.amount, description=f"Advance receipt {number}"),
            self._line(mapping, AccountRole.CUSTOMER_ADVANCE,
                       credit=document.amount, description=f"Customer advance {number}"),
        ]


class AdvanceAllocationRule(BasePostingRule[AdvanceAllocation]):
    source_doc_type = "advance_allocation"
    required_roles = (AccountRole.CUSTOMER_ADVANCE, AccountRole.ACCOUNTS_RECEIVABLE)

    def source_number(self, document: Any) -> str:
        return f"{document.header.source_doc_number}-ALLOC"

    def compute_lines(self, document, mapping):
        return [
            self._line(mapping, AccountRole.CUSTOMER_ADVANCE, debit=document.amount),
            self._line(mapping, AccountRole.ACCOUNTS_RECEIVABLE, credit=document.amount),
        ]


_RULES: dict[type, BasePostingRule] = {
    SalesInvoice: SalesInvoiceRule(),
    PurchaseBill: PurchaseBillRule(),
    PayrollRun: PayrollRule(),
    StockAdjustment: StockAdjustmentRule(),
    AdvanceAllocation: AdvanceAllocationRule(),
}

CUSTOMER_PAYMENT = CustomerPaymentRule()
SUPPLIER_PAYMENT = SupplierPaymentRule()
ADVANCE_RECEIPT = AdvanceReceiptRule()


def rule_for(document: Any) -> BasePostingRule:
    """
    Rule for a document instance.

    Payments are shared by three rules and have no default; pass the rule
    (CUSTOMER_PAYMENT, SUPPLIER_PAYMENT, ADVANCE_RECEIPT) explicitly.
    """
    try:
        return _RULES[type(document)]
    except KeyError:
        raise LookupError(
            f"No default posting rule for {type(document).__name__}"
        ) from None


def build_posting_request(
    document: Any,
    mapping: AccountRoleMapping,
    rule: BasePostingRule | None = None,
) -> PostingRequest:
    """Build the PostingRequest for ``document`` using ``rule`` or its default rule."""
    return (rule or rule_for(document)).build_request(document, mapping)


def all_rules() -> tuple[BasePostingRule, ...]:
    return (*_RULES.values(), CUSTOMER_PAYMENT, SUPPLIER_PAYMENT, ADVANCE_RECEIPT)


__all__ = [
    "ADVANCE_RECEIPT",
    "AdvanceAllocation",
    "AdvanceAllocationRule",
    "AdvanceReceiptRule",
    "CUSTOMER_PAYMENT",
    "CustomerPaymentRule",
    "Payment",
    "PayrollRule",
    "PayrollRun",
    "PurchaseBill",
    "PurchaseBillRule",
    "SUPPLIER_PAYMENT",
    "SalesInvoice",
    "SalesInvoiceRule",
    "StockAdjustment",
    "StockAdjustmentRule",
    "SupplierPaymentRule",
    "all_rules",
    "build_posting_request",
    "rule_for",
]
