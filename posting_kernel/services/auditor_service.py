"""
AuditorService -- tamper-evident audit trail.

Responsibility:
    Appends hash-chained AuditEvent rows for postings, reversals and number
    series changes, and validates the chain on demand.

Architecture position:
    Kernel > Services.  Implements the AuditSink protocol the posting and
    reversal engines write to.

Invariants enforced:
    - Append-only: audit events are never modified or deleted (ORM listeners).
    - hash = H(entity_type, entity_id, action, payload_hash, prev_hash).
    - The chain head row is locked (SELECT ... FOR UPDATE) while an event is
      appended, so concurrent writers cannot fork the chain.

Failure modes:
    - AuditChainBrokenError from validate_chain() when a stored hash or link
      does not recompute.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from posting_kernel.db.base import SYSTEM_ACTOR_ID
from posting_kernel.domain.clock import Clock
from posting_kernel.exceptions import AuditChainBrokenError
from posting_kernel.logging_config import get_logger
from posting_kernel.models.audit_event import AuditAction, AuditChainHead, AuditEvent
from posting_kernel.services.base import BaseService
from posting_kernel.utils.hashing import canonicalize_json, hash_audit_event, hash_payload

logger = get_logger("services.auditor")

_CHAIN_NAME = "audit"


class AuditSink(Protocol):
    """Where the engines send their audit records."""

    def record(
        self,
        entity_type: str,
        entity_id: str | UUID,
        action: AuditAction | str,
        payload: dict[str, Any],
        actor_id: UUID | None = None,
        company_id: UUID | None = None,
    ) -> Any:
        ...


@dataclass(frozen=True)
class AuditTraceEntry:
    """A single entry in an audit trace."""

    seq: int
    action: str
    occurred_at: datetime
    actor_id: UUID
    payload: dict[str, Any]
    hash: str


class AuditorService(BaseService):
    """
    Contract:
        ``record`` flushes one AuditEvent inside the caller's transaction.

    Non-goals:
        - Does NOT call ``session.commit()``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    def record(
        self,
        entity_type: str,
        entity_id: str | UUID,
        action: AuditAction | str,
        payload: dict[str, Any],
        actor_id: UUID | None = None,
        company_id: UUID | None = None,
    ) -> AuditEvent:
        """Append one event to the chain."""
        action_value = AuditAction(action).value
        # JSON column round-trip must not change the hashed content
        payload = json.loads(canonicalize_json(payload))
        head = self._lock_head()

        seq = head.last_seq + 1
        prev_hash = head.last_hash
        payload_hash = hash_payload(payload)
        event_hash = hash_audit_event(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action_value,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
        )

        audit_event = AuditEvent(
            seq=seq,
            company_id=company_id,
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action_value,
            actor_id=actor_id or SYSTEM_ACTOR_ID,
            occurred_at=self._clock.now(),
            payload=payload,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            hash=event_hash,
        )
        self._session.add(audit_event)
        head.last_seq = seq
        head.last_hash = event_hash
        self._session.flush()

        logger.info(
            "audit_event_created",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": action_value,
                "seq": seq,
            },
        )
        return audit_event

    def _lock_head(self) -> AuditChainHead:
        stmt = (
            select(AuditChainHead)
            .where(AuditChainHead.name == _CHAIN_NAME)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        head = self._session.execute(stmt).scalar_one_or_none()
        if head is not None:
            return head

        # First event ever: create the head, tolerating a concurrent creator
        try:
            with self._session.begin_nested():
                self._session.add(AuditChainHead(name=_CHAIN_NAME, last_seq=0, last_hash=None))
                self._session.flush()
        except IntegrityError:
            logger.debug("audit_chain_head_race_retry")
        return self._session.execute(stmt).scalar_one()

    def trace(self, entity_type: str, entity_id: str | UUID) -> tuple[AuditTraceEntry, ...]:
        """All events for one entity, oldest first."""
        events = self._session.execute(
            select(AuditEvent)
            .where(
                AuditEvent.entity_type == entity_type,
                AuditEvent.entity_id == str(entity_id),
            )
            .order_by(AuditEvent.seq)
        ).scalars().all()
        return tuple(
            AuditTraceEntry(
                seq=e.seq,
                action=e.action,
                occurred_at=e.occurred_at,
                actor_id=e.actor_id,
                payload=e.payload or {},
                hash=e.hash,
            )
            for e in events
        )

    def validate_chain(self) -> bool:
        """
        Recompute every hash and link.

        Raises:
            AuditChainBrokenError: on the first mismatch.
        """
        events = self._session.execute(
            select(AuditEvent).order_by(AuditEvent.seq)
        ).scalars().all()

        prev_hash: str | None = None
        for event in events:
            if event.prev_hash != prev_hash:
                logger.critical("audit_chain_broken", extra={"seq": event.seq})
                raise AuditChainBrokenError(
                    str(event.id), prev_hash or "None", event.prev_hash or "None"
                )
            expected = hash_audit_event(
                entity_type=event.entity_type,
                entity_id=event.entity_id,
                action=event.action,
                payload_hash=hash_payload(event.payload or {}),
                prev_hash=event.prev_hash,
            )
            if event.hash != expected:
                logger.critical("audit_chain_broken", extra={"seq": event.seq})
                raise AuditChainBrokenError(str(event.id), expected, event.hash)
            prev_hash = event.hash
        return True
