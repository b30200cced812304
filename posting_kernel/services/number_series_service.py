"""
NumberSeriesService -- gap-free, duplicate-free document numbers.

Responsibility:
    Issues the next formatted number of a company's series for a document
    type, keeps the allocation log, and manages the series lifecycle
    (create, lock, unlock, deactivate, cancel an issued number).

Architecture position:
    Kernel > Services.  Called by GLPostingService for journal numbers and
    by callers that number business documents.  Formatting and reset
    decisions are delegated to posting_kernel.domain.numbering.

Invariants enforced:
    - A number is issued at most once per (company, document type, scope):
      the series row is locked (SELECT ... FOR UPDATE), the counter moves
      by compare-and-swap on current_value, and the unique allocation log
      rejects anything that slipped through.
    - The counter advance is transactional; a rollback returns the number.
    - Cancelled numbers stay in the log and are never re-issued.

Failure modes:
    - SeriesLockedError when the series is locked.
    - DuplicateNumberRiskError when the counter cannot be advanced or the
      generated number is already in the log.
    - InvalidSeriesConfigError from create_series().
    - A missing or inactive series does not raise from allocate(); it
      returns a time-based fallback number flagged ``fallback=True``.
"""

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from posting_kernel.db.base import SYSTEM_ACTOR_ID
from posting_kernel.domain.clock import Clock
from posting_kernel.domain.numbering import (
    SeriesFormat,
    format_number,
    plan_allocation,
    validate_series_format,
)
from posting_kernel.exceptions import (
    AllocationNotFoundError,
    DuplicateNumberRiskError,
    InvalidSeriesConfigError,
    SeriesLockedError,
    SeriesNotFoundError,
)
from posting_kernel.logging_config import get_logger
from posting_kernel.models.audit_event import AuditAction, AuditEntityType
from posting_kernel.models.number_series import (
    AllocationStatus,
    NumberAllocation,
    NumberSeries,
)
from posting_kernel.services.auditor_service import AuditSink
from posting_kernel.services.base import BaseService

logger = get_logger("services.number_series")

JOURNAL_SERIES_KEY = "JV"

MAX_CAS_ATTEMPTS = 3


@dataclass(frozen=True)
class AllocatedNumber:
    """
    An issued document number.

    ``series_id`` and ``ordinal`` are None for fallback numbers.
    """

    number: str
    ordinal: int | None
    series_id: UUID | None
    fallback: bool = False


def series_format(series: NumberSeries) -> SeriesFormat:
    return SeriesFormat(
        document_type_key=series.document_type_key,
        name=series.name,
        prefix=series.prefix,
        separator=series.separator,
        number_length=series.number_length,
        year_format=series.year_format,
        reset_rule=series.reset_rule,
        scope=series.scope,
        starting_number=series.starting_number,
    )


class NumberSeriesService(BaseService):
    """
    Contract:
        allocate() returns a number that no other allocation, committed or
        concurrent, has received for the same series.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does NOT re-issue cancelled numbers.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auditor: AuditSink | None = None,
    ):
        super().__init__(session, clock)
        self._auditor = auditor

    # ------------------------------------------------------------------
    # Series lifecycle
    # ------------------------------------------------------------------

    def create_series(
        self,
        company_id: UUID,
        fmt: SeriesFormat,
        scope_ref: str = "",
        actor_id: UUID | None = None,
    ) -> NumberSeries:
        """
        Register a new series; its first number is ``fmt.starting_number``.

        Raises:
            InvalidSeriesConfigError: the format is inconsistent.
        """
        result = validate_series_format(fmt)
        if not result:
            raise InvalidSeriesConfigError(
                fmt.document_type_key, [e.message for e in result.errors]
            )

        series = NumberSeries(
            company_id=company_id,
            document_type_key=fmt.document_type_key,
            scope_ref=scope_ref,
            name=fmt.name,
            prefix=fmt.prefix,
            separator=fmt.separator,
            number_length=fmt.number_length,
            year_format=fmt.year_format.value,
            reset_rule=fmt.reset_rule.value,
            scope=fmt.scope.value,
            starting_number=fmt.starting_number,
            current_value=fmt.starting_number,
            last_reset_period=None,
            is_active=True,
            is_locked=False,
            created_by_id=actor_id or SYSTEM_ACTOR_ID,
        )
        self._session.add(series)
        self._session.flush()

        logger.info(
            "number_series_created",
            extra={
                "company_id": str(company_id),
                "document_type_key": fmt.document_type_key,
                "scope_ref": scope_ref,
                "prefix": fmt.prefix,
            },
        )
        self._audit_series(series, AuditAction.CREATE, "created", actor_id)
        return series

    def get_series(
        self,
        company_id: UUID,
        document_type_key: str,
        scope_ref: str | None = None,
    ) -> NumberSeries | None:
        return self._session.execute(
            select(NumberSeries)
            .where(
                NumberSeries.company_id == company_id,
                NumberSeries.document_type_key == document_type_key,
                NumberSeries.scope_ref == (scope_ref or ""),
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def lock_series(
        self,
        company_id: UUID,
        document_type_key: str,
        scope_ref: str | None = None,
        actor_id: UUID | None = None,
    ) -> NumberSeries:
        """Stop allocation from a series (e.g. during a number audit)."""
        return self._set_flag(company_id, document_type_key, scope_ref,
                              "is_locked", True, "locked", actor_id)

    def unlock_series(
        self,
        company_id: UUID,
        document_type_key: str,
        scope_ref: str | None = None,
        actor_id: UUID | None = None,
    ) -> NumberSeries:
        return self._set_flag(company_id, document_type_key, scope_ref,
                              "is_locked", False, "unlocked", actor_id)

    def deactivate_series(
        self,
        company_id: UUID,
        document_type_key: str,
        scope_ref: str | None = None,
        actor_id: UUID | None = None,
    ) -> NumberSeries:
        """Retire a series.  Later allocations degrade to fallback numbers."""
        return self._set_flag(company_id, document_type_key, scope_ref,
                              "is_active", False, "deactivated", actor_id)

    # ------------------------------------------------------------------
    # Allocation
    # ------------------------------------------------------------------

    def allocate(
        self,
        company_id: UUID,
        document_type_key: str,
        reference_date: date | None = None,
        scope_ref: str | None = None,
        entity_id: str | UUID | None = None,
    ) -> AllocatedNumber:
        """
        Issue the next number of the series.

        Preconditions:
            - The caller is within an active database transaction.

        Postconditions:
            - The series counter has advanced by one (or reset) and the
              number is recorded in the allocation log as ``final``.

        Raises:
            SeriesLockedError: the series is locked.
            DuplicateNumberRiskError: the counter could not be advanced
                safely or the number already exists.
        """
        reference_date = reference_date or self._clock.today()
        scope_ref = scope_ref or ""

        for attempt in range(1, MAX_CAS_ATTEMPTS + 1):
            series = self._lock_series(company_id, document_type_key, scope_ref)
            if series is None or not series.is_active:
                return self._fallback(company_id, document_type_key, scope_ref)
            if series.is_locked:
                raise SeriesLockedError(str(series.id), document_type_key)

            fmt = series_format(series)
            expected = series.current_value
            step = plan_allocation(fmt, expected, series.last_reset_period, reference_date)

            # Compare-and-swap: a writer that did not hold the row lock
            # cannot have moved the counter under us unnoticed
            swapped = self._session.execute(
                update(NumberSeries)
                .where(
                    NumberSeries.id == series.id,
                    NumberSeries.current_value == expected,
                )
                .values(
                    current_value=step.next_value,
                    last_reset_period=step.period_marker,
                    updated_at=self._clock.now(),
                )
                .execution_options(synchronize_session=False)
            )
            if swapped.rowcount == 1:
                self._session.expire(series, ["current_value", "last_reset_period", "updated_at"])
                break

            logger.warning(
                "number_series_cas_retry",
                extra={
                    "document_type_key": document_type_key,
                    "expected": expected,
                    "attempt": attempt,
                },
            )
        else:
            raise DuplicateNumberRiskError(
                document_type_key,
                None,
                f"counter moved concurrently {MAX_CAS_ATTEMPTS} times",
            )

        number = format_number(fmt, step.ordinal, step.format_date, series.scope_ref)
        self._log_allocation(series, number, step.ordinal, step.period_marker, entity_id)

        if step.reset:
            logger.info(
                "number_series_reset",
                extra={
                    "document_type_key": document_type_key,
                    "period": step.period_marker,
                },
            )
        if step.backdated:
            logger.warning(
                "number_series_backdated",
                extra={
                    "document_type_key": document_type_key,
                    "reference_date": reference_date.isoformat(),
                    "series_period": step.period_marker,
                    "number": number,
                },
            )
        logger.debug(
            "number_allocated",
            extra={
                "document_type_key": document_type_key,
                "number": number,
                "ordinal": step.ordinal,
            },
        )
        return AllocatedNumber(number=number, ordinal=step.ordinal, series_id=series.id)

    def allocate_number(
        self,
        company_id: UUID,
        document_type_key: str,
        reference_date: date | None = None,
        scope_ref: str | None = None,
        entity_id: str | UUID | None = None,
    ) -> str:
        """Convenience wrapper returning only the number string."""
        return self.allocate(
            company_id, document_type_key, reference_date, scope_ref, entity_id
        ).number

    def preview_next(
        self,
        company_id: UUID,
        document_type_key: str,
        reference_date: date | None = None,
        scope_ref: str | None = None,
    ) -> str:
        """
        Format the number the next allocation would return, without
        consuming it.

        Raises:
            SeriesNotFoundError: no active series.
        """
        series = self.get_series(company_id, document_type_key, scope_ref)
        if series is None or not series.is_active:
            raise SeriesNotFoundError(str(company_id), document_type_key, scope_ref or "")
        fmt = series_format(series)
        step = plan_allocation(
            fmt,
            series.current_value,
            series.last_reset_period,
            reference_date or self._clock.today(),
        )
        return format_number(fmt, step.ordinal, step.format_date, series.scope_ref)

    def cancel_allocation(
        self,
        company_id: UUID,
        document_type_key: str,
        number: str,
        reason: str,
        scope_ref: str | None = None,
        actor_id: UUID | None = None,
    ) -> NumberAllocation:
        """
        Void an issued number.  The number stays consumed.

        Raises:
            AllocationNotFoundError: the number was never issued.
        """
        allocation = self._session.execute(
            select(NumberAllocation).where(
                NumberAllocation.company_id == company_id,
                NumberAllocation.document_type_key == document_type_key,
                NumberAllocation.scope_ref == (scope_ref or ""),
                NumberAllocation.generated_number == number,
            )
        ).scalar_one_or_none()
        if allocation is None:
            raise AllocationNotFoundError(str(company_id), number)

        if allocation.status != AllocationStatus.CANCELLED:
            allocation.status = AllocationStatus.CANCELLED
            allocation.cancelled_at = self._clock.now()
            allocation.cancel_reason = reason
            self._session.flush()

            logger.info(
                "number_allocation_cancelled",
                extra={
                    "document_type_key": document_type_key,
                    "number": number,
                    "reason": reason,
                },
            )
            if self._auditor is not None:
                self._auditor.record(
                    entity_type=AuditEntityType.NUMBER_ALLOCATION.value,
                    entity_id=allocation.id,
                    action=AuditAction.CANCEL,
                    payload={
                        "document_type_key": document_type_key,
                        "number": number,
                        "reason": reason,
                    },
                    actor_id=actor_id,
                    company_id=company_id,
                )
        return allocation

    def allocations(
        self,
        company_id: UUID,
        document_type_key: str,
        scope_ref: str | None = None,
    ) -> list[NumberAllocation]:
        """Allocation log of a series, in issue order."""
        return list(
            self._session.execute(
                select(NumberAllocation)
                .where(
                    NumberAllocation.company_id == company_id,
                    NumberAllocation.document_type_key == document_type_key,
                    NumberAllocation.scope_ref == (scope_ref or ""),
                )
                .order_by(NumberAllocation.allocated_at, NumberAllocation.ordinal)
            ).scalars().all()
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock_series(
        self, company_id: UUID, document_type_key: str, scope_ref: str
    ) -> NumberSeries | None:
        return self._session.execute(
            select(NumberSeries)
            .where(
                NumberSeries.company_id == company_id,
                NumberSeries.document_type_key == document_type_key,
                NumberSeries.scope_ref == scope_ref,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _fallback(
        self, company_id: UUID, document_type_key: str, scope_ref: str
    ) -> AllocatedNumber:
        number = f"{document_type_key}-{self._clock.epoch_millis()}"
        logger.warning(
            "number_series_fallback",
            extra={
                "company_id": str(company_id),
                "document_type_key": document_type_key,
                "scope_ref": scope_ref,
                "number": number,
            },
        )
        return AllocatedNumber(number=number, ordinal=None, series_id=None, fallback=True)

    def _log_allocation(
        self,
        series: NumberSeries,
        number: str,
        ordinal: int,
        marker: str | None,
        entity_id: str | UUID | None,
    ) -> None:
        try:
            with self._session.begin_nested():
                self._session.add(NumberAllocation(
                    company_id=series.company_id,
                    series_id=series.id,
                    document_type_key=series.document_type_key,
                    scope_ref=series.scope_ref,
                    generated_number=number,
                    ordinal=ordinal,
                    period_marker=marker,
                    entity_id=str(entity_id) if entity_id is not None else None,
                    status=AllocationStatus.FINAL,
                    allocated_at=self._clock.now(),
                ))
                self._session.flush()
        except IntegrityError as exc:
            logger.error(
                "number_series_duplicate_blocked",
                extra={"document_type_key": series.document_type_key, "number": number},
            )
            raise DuplicateNumberRiskError(
                series.document_type_key, number, "number already issued"
            ) from exc

    def _set_flag(
        self,
        company_id: UUID,
        document_type_key: str,
        scope_ref: str | None,
        attribute: str,
        value: bool,
        event: str,
        actor_id: UUID | None,
    ) -> NumberSeries:
        series = self._lock_series(company_id, document_type_key, scope_ref or "")
        if series is None:
            raise SeriesNotFoundError(str(company_id), document_type_key, scope_ref or "")
        setattr(series, attribute, value)
        series.updated_by_id = actor_id or SYSTEM_ACTOR_ID
        self._session.flush()

        logger.info(
            f"number_series_{event}",
            extra={"company_id": str(company_id), "document_type_key": document_type_key},
        )
        self._audit_series(series, AuditAction.UPDATE, event, actor_id)
        return series

    def _audit_series(
        self,
        series: NumberSeries,
        action: AuditAction,
        event: str,
        actor_id: UUID | None,
    ) -> None:
        if self._auditor is None:
            return
        self._auditor.record(
            entity_type=AuditEntityType.NUMBER_SERIES.value,
            entity_id=series.id,
            action=action,
            payload={
                "event": event,
                "document_type_key": series.document_type_key,
                "scope_ref": series.scope_ref,
                "is_active": series.is_active,
                "is_locked": series.is_locked,
            },
            actor_id=actor_id,
            company_id=series.company_id,
        )
