"""
Module: posting_kernel.models.audit_event
Responsibility: ORM persistence for the hash-chained audit trail.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Audit events are append-only (ORM listeners in db/immutability.py).
    - hash = H(entity_type, entity_id, action, payload_hash, prev_hash);
      prev_hash is the hash of the event with seq - 1.
    - AuditChainHead holds the last seq and hash; its row lock serializes
      writers so the chain never forks.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from posting_kernel.db.base import Base, UUIDString


class AuditAction(str, Enum):
    """Actions recorded in the audit trail."""

    CREATE = "CREATE"
    CANCEL = "CANCEL"
    UPDATE = "UPDATE"


class AuditEntityType(str, Enum):
    """Entity types written by the posting kernel."""

    JOURNAL_POSTING = "journal_posting"
    JOURNAL_REVERSAL = "journal_reversal"
    NUMBER_ALLOCATION = "number_allocation"
    NUMBER_SERIES = "number_series"


class AuditEvent(Base):
    """Single immutable audit record."""

    __tablename__ = "audit_events"

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_seq", "seq", unique=True),
    )

    # Position in the chain
    seq: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    company_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    entity_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    entity_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    action: Mapped[AuditAction] = mapped_column(
        String(20),
        nullable=False,
    )

    actor_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    payload: Mapped[dict | None] = mapped_column(
        JSON,
        nullable=True,
    )

    payload_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    prev_hash: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<AuditEvent #{self.seq} {self.entity_type}:{self.action}>"


class AuditChainHead(Base):
    """Tip of an audit chain (one row per chain name)."""

    __tablename__ = "audit_chain_heads"

    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    last_seq: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    last_hash: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )
