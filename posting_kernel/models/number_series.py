"""
Module: posting_kernel.models.number_series
Responsibility: ORM persistence for document number series and the log of
    every number they issued.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One series per (company_id, document_type_key, scope_ref).
    - current_value (the next ordinal to issue) only moves forward, except
      when a reset rule fires at a period boundary.
    - A generated number appears at most once in number_allocations for its
      (company, document type, scope); cancelled numbers are never re-issued.

Failure modes:
    - IntegrityError on a duplicate series or a duplicate generated number
      (surfaced by NumberSeriesService as DuplicateNumberRiskError).
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from posting_kernel.db.base import Base, TrackedBase, UUIDString


class AllocationStatus(str, Enum):
    """Status of an issued number."""

    FINAL = "final"
    CANCELLED = "cancelled"


class NumberSeries(TrackedBase):
    """
    Named, scoped counter that produces formatted document numbers.

    Contract:
        Formatting fields (prefix, separator, number_length, year_format)
        are described by posting_kernel.domain.numbering.SeriesFormat.
        last_reset_period holds the period marker of the latest allocation
        ("YYYY" for yearly, "YYYY-MM" for monthly reset, NULL before the
        first allocation or for reset_rule="never").
    """

    __tablename__ = "number_series"

    __table_args__ = (
        UniqueConstraint(
            "company_id", "document_type_key", "scope_ref",
            name="uq_number_series_company_key_scope",
        ),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    # Document type key, e.g. "INV", "JV"
    document_type_key: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    # Branch or warehouse id for scoped series; "" for company scope
    scope_ref: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default="",
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    prefix: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    separator: Mapped[str] = mapped_column(
        String(5),
        nullable=False,
        default="-",
    )

    number_length: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=5,
    )

    year_format: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="none",
    )

    reset_rule: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="never",
    )

    scope: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="company",
    )

    starting_number: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=1,
    )

    # Next ordinal to issue
    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    last_reset_period: Mapped[str | None] = mapped_column(
        String(7),
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    is_locked: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    def __repr__(self) -> str:
        scope = f"@{self.scope_ref}" if self.scope_ref else ""
        return f"<NumberSeries {self.document_type_key}{scope} next={self.current_value}>"


class NumberAllocation(Base):
    """One issued document number."""

    __tablename__ = "number_allocations"

    __table_args__ = (
        UniqueConstraint(
            "company_id", "document_type_key", "generated_number",
            name="uq_number_allocation_number",
        ),
        Index("idx_number_allocation_series", "series_id"),
        Index("idx_number_allocation_entity", "entity_id"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    series_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("number_series.id"),
        nullable=False,
    )

    document_type_key: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    scope_ref: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default="",
    )

    generated_number: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    ordinal: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    period_marker: Mapped[str | None] = mapped_column(
        String(7),
        nullable=True,
    )

    # Business document the number was issued to, when known
    entity_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    status: Mapped[AllocationStatus] = mapped_column(
        String(20),
        nullable=False,
        default=AllocationStatus.FINAL,
    )

    allocated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    cancelled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    cancel_reason: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<NumberAllocation {self.generated_number} {self.status}>"
