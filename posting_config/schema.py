"""
PostingConfigSet schema.

Frozen dataclasses describing a company's posting configuration as it is
authored in YAML: the number series catalogue, the chart-of-accounts seed
and the account-role bindings (role -> account code).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class SeriesDef:
    """One number series of the catalogue."""

    key: str
    name: str
    prefix: str
    separator: str = "-"
    number_length: int = 5
    year_format: str = "yy"
    reset_rule: str = "yearly"
    scope: str = "company"
    starting_number: int = 1


@dataclass(frozen=True)
class AccountDef:
    """One chart-of-accounts seed row."""

    code: str
    name: str
    account_type: str
    account_group: str | None = None
    parent_code: str | None = None
    allow_manual_entry: bool = True


@dataclass(frozen=True)
class RoleBindingDef:
    """Account role bound to an account code."""

    role: str
    account_code: str


@dataclass(frozen=True)
class PostingConfigSet:
    """A complete, validated posting configuration."""

    config_id: str
    version: int
    description: str
    balance_tolerance: Decimal
    number_series: tuple[SeriesDef, ...]
    chart_of_accounts: tuple[AccountDef, ...]
    role_bindings: tuple[RoleBindingDef, ...]
    checksum: str = ""

    def series(self, key: str) -> SeriesDef | None:
        return next((s for s in self.number_series if s.key == key), None)

    def account(self, code: str) -> AccountDef | None:
        return next((a for a in self.chart_of_accounts if a.code == code), None)

    def binding_for(self, role: str) -> str | None:
        return next(
            (b.account_code for b in self.role_bindings if b.role == role), None
        )
