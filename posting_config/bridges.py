"""
Config -> Kernel bridges.

Turn a PostingConfigSet into kernel inputs: series formats, seeded number
series and accounts, and the company's AccountRoleMapping.  They live in
posting_config because the kernel never imports configuration.

Usage:
    config = get_posting_config()
    seed_chart_of_accounts(session, company_id, config)
    seed_number_series(session, company_id, config)
    mapping = resolve_role_mapping(session, company_id, config)
    posting = build_posting_service(session, config)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from uuid import UUID

from sqlalchemy.orm import Session

from posting_config.schema import PostingConfigSet, SeriesDef
from posting_kernel.domain.dtos import AccountView
from posting_kernel.domain.numbering import SeriesFormat, SeriesScope
from posting_kernel.exceptions import MissingAccountRoleError
from posting_kernel.models.number_series import NumberSeries
from posting_kernel.posting_rules import AccountRole, AccountRoleMapping
from posting_kernel.services.auditor_service import AuditSink
from posting_kernel.services.chart_of_accounts_service import ChartOfAccountsService
from posting_kernel.services.number_series_service import NumberSeriesService
from posting_kernel.services.posting_service import GLPostingService

_logger = logging.getLogger("posting_kernel.config")


def series_format_of(series: SeriesDef) -> SeriesFormat:
    return SeriesFormat(
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


def build_series_configs(config: PostingConfigSet) -> list[SeriesFormat]:
    """SeriesFormat for every series of the catalogue, in file order."""
    return [series_format_of(s) for s in config.number_series]


def seed_number_series(
    session: Session,
    company_id: UUID,
    config: PostingConfigSet,
    scope_refs: Mapping[str, Iterable[str]] | None = None,
    actor_id: UUID | None = None,
    auditor: AuditSink | None = None,
) -> list[NumberSeries]:
    """
    Create the catalogue's series for a company.  Existing series are left
    untouched, so seeding twice is harmless.

    ``scope_refs`` maps a scope ("branch", "warehouse") to the ids a scoped
    series is created for; without it a scoped series gets one
    company-wide counter.
    """
    service = NumberSeriesService(session, auditor=auditor)
    created: list[NumberSeries] = []
    skipped = 0

    for fmt in build_series_configs(config):
        refs: Iterable[str] = ("",)
        if fmt.scope != SeriesScope.COMPANY and scope_refs:
            refs = tuple(scope_refs.get(fmt.scope.value, ())) or ("",)
        for ref in refs:
            if service.get_series(company_id, fmt.document_type_key, ref) is not None:
                skipped += 1
                continue
            created.append(service.create_series(company_id, fmt, ref, actor_id))

    _logger.info(
        "number_series_seeded",
        extra={
            "company_id": str(company_id),
            "config_id": config.config_id,
            "series_created": len(created),
            "skipped": skipped,
        },
    )
    return created


def seed_chart_of_accounts(
    session: Session,
    company_id: UUID,
    config: PostingConfigSet,
    actor_id: UUID | None = None,
) -> dict[str, AccountView]:
    """
    Create the seed accounts for a company, parents before children.
    Codes that already exist are kept as they are.

    Returns every seeded code mapped to its account.
    """
    service = ChartOfAccountsService(session)
    by_code: dict[str, AccountView] = {}
    pending = list(config.chart_of_accounts)
    created = 0

    while pending:
        progressed = False
        for account in list(pending):
            if account.parent_code is not None and account.parent_code not in by_code:
                existing_parent = service.get_by_code(company_id, account.parent_code)
                if existing_parent is None:
                    continue
                by_code[account.parent_code] = existing_parent

            existing = service.get_by_code(company_id, account.code)
            if existing is None:
                existing = service.create_account(
                    company_id=company_id,
                    code=account.code,
                    name=account.name,
                    account_type=account.account_type,
                    account_group=account.account_group,
                    parent_id=by_code[account.parent_code].id if account.parent_code else None,
                    allow_manual_entry=account.allow_manual_entry,
                    actor_id=actor_id,
                )
                created += 1
            by_code[account.code] = existing
            pending.remove(account)
            progressed = True
        if not progressed:
            raise ValueError(
                "Unresolvable parent accounts: "
                + ", ".join(sorted(f"{a.code}->{a.parent_code}" for a in pending))
            )

    _logger.info(
        "chart_of_accounts_seeded",
        extra={
            "company_id": str(company_id),
            "config_id": config.config_id,
            "accounts_created": created,
        },
    )
    return by_code


def resolve_role_mapping(
    session: Session,
    company_id: UUID,
    config: PostingConfigSet,
) -> AccountRoleMapping:
    """
    Resolve the role bindings of ``config`` against the company's chart.

    Raises:
        MissingAccountRoleError: a bound account code is not in the chart
            or is inactive.
    """
    service = ChartOfAccountsService(session)
    accounts: dict[AccountRole, UUID] = {}
    for binding in config.role_bindings:
        role = AccountRole(binding.role)
        account = service.get_by_code(company_id, binding.account_code)
        if account is None or not account.is_active:
            _logger.error(
                "role_binding_unresolved",
                extra={"role": role.value, "account_code": binding.account_code},
            )
            raise MissingAccountRoleError(role.value)
        accounts[role] = account.id
    return AccountRoleMapping(company_id=company_id, accounts=accounts)


def build_posting_service(
    session: Session,
    config: PostingConfigSet,
    **kwargs,
) -> GLPostingService:
    """
    GLPostingService using the balance tolerance of ``config``.

    Extra keyword arguments (accounts, numbering, auditor, clock) are
    passed through unchanged.
    """
    return GLPostingService(session, tolerance=config.balance_tolerance, **kwargs)
