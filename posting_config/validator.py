"""
Configuration validator.

Checks a PostingConfigSet for structural problems before anything is
seeded: series formats, duplicate keys and codes, account types, parent
references, and role bindings that name unknown roles or accounts.
"""

from __future__ import annotations

from dataclasses import dataclass

from posting_config.schema import PostingConfigSet
from posting_kernel.domain.numbering import SeriesFormat, validate_series_format
from posting_kernel.models.account import AccountType
from posting_kernel.posting_rules import AccountRole


@dataclass(frozen=True)
class ConfigValidationResult:
    errors: tuple[str, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_configuration(config: PostingConfigSet) -> ConfigValidationResult:
    errors: list[str] = []

    if config.balance_tolerance < 0:
        errors.append("balance_tolerance must not be negative")

    seen_keys: set[str] = set()
    for series in config.number_series:
        if series.key in seen_keys:
            errors.append(f"number series {series.key}: duplicate key")
        seen_keys.add(series.key)
        try:
            fmt = SeriesFormat(
                document_type_key=series.key,
                name=series.name,
                prefix=series.prefix,
                separator=series.separator,
                number_length=series.number_length,
                year_format=series.year_format,
                reset_rule=series.reset_rule,
                scope=series.scope,
                starting_number=series.starting_number,
            )
        except ValueError as exc:
            errors.append(f"number series {series.key}: {exc}")
            continue
        result = validate_series_format(fmt)
        errors.extend(f"number series {series.key}: {e.message}" for e in result.errors)

    codes: set[str] = set()
    valid_types = {t.value for t in AccountType}
    for account in config.chart_of_accounts:
        if account.code in codes:
            errors.append(f"account {account.code}: duplicate code")
        codes.add(account.code)
        if account.account_type not in valid_types:
            errors.append(f"account {account.code}: unknown type {account.account_type}")
    for account in config.chart_of_accounts:
        if account.parent_code is not None and account.parent_code not in codes:
            errors.append(f"account {account.code}: unknown parent {account.parent_code}")

    valid_roles = {r.value for r in AccountRole}
    for binding in config.role_bindings:
        if binding.role not in valid_roles:
            errors.append(f"role binding {binding.role}: unknown role")
        if binding.account_code not in codes:
            errors.append(
                f"role binding {binding.role}: account {binding.account_code} "
                "is not in the chart of accounts"
            )

    return ConfigValidationResult(errors=tuple(errors))
