"""Document posting rules: business documents -> posting requests."""

from posting_kernel.posting_rules.base import (
    AccountRole,
    AccountRoleMapping,
    BasePostingRule,
    DocumentHeader,
    PaymentMethod,
)
from posting_kernel.posting_rules.documents import (
    ADVANCE_RECEIPT,
    CUSTOMER_PAYMENT,
    SUPPLIER_PAYMENT,
    AdvanceAllocation,
    Payment,
    PayrollRun,
    PurchaseBill,
    SalesInvoice,
    StockAdjustment,
    all_rules,
    build_posting_request,
    rule_for,
)

__all__ = [
    "ADVANCE_RECEIPT",
    "AccountRole",
    "AccountRoleMapping",
    "AdvanceAllocation",
    "BasePostingRule",
    "CUSTOMER_PAYMENT",
    "DocumentHeader",
    "Payment",
    "PaymentMethod",
    "PayrollRun",
    "PurchaseBill",
    "SUPPLIER_PAYMENT",
    "SalesInvoice",
    "StockAdjustment",
    "all_rules",
    "build_posting_request",
    "rule_for",
]
