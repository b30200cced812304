"""
posting_services.document_lifecycle -- state transitions with ledger effects.

Responsibility:
    Applies a document status change through the DocumentStateMachine and
    performs what the change implies for the ledger: posting the document's
    journal when it is approved or completed, and reversing that journal
    when an approved or completed document is cancelled.

Architecture position:
    Services layer.  Thin coordinator over DocumentStateMachine,
    GLPostingService and ReversalService.  Business documents keep their
    own state column; this service returns the new state and journal ids
    for the caller to store.

Invariants enforced:
    - The transition table is consulted first; an illegal, unauthorized or
      reason-less transition performs no ledger work.
    - Posting and reversal run inside one SAVEPOINT, so a failure leaves
      no journal behind and the caller keeps the old state.
    - A document is posted at most once; cancellation reverses the journal
      it was posted with, using the cancellation reason.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from posting_kernel.domain.clock import Clock, SystemClock
from posting_kernel.domain.document_state import (
    DocumentState,
    DocumentStateMachine,
    Role,
    TransitionEffect,
)
from posting_kernel.domain.dtos import PostingRequest
from posting_kernel.logging_config import LogContext, get_logger
from posting_kernel.posting_rules import AccountRoleMapping, BasePostingRule, build_posting_request
from posting_kernel.services.posting_service import GLPostingService
from posting_kernel.services.reversal_service import ReversalService

logger = get_logger("services.document_lifecycle")

_POSTING_TARGETS = frozenset({DocumentState.APPROVED, DocumentState.COMPLETED})


@dataclass(frozen=True)
class DocumentRef:
    """What the lifecycle needs to know about a business document."""

    document_type: str
    document_id: str
    state: DocumentState
    journal_id: UUID | None = None


@dataclass(frozen=True)
class LifecycleOutcome:
    """Result of a successful transition."""

    document: DocumentRef
    effect: TransitionEffect
    journal_id: UUID | None = None
    journal_number: str | None = None
    reversal_journal_id: UUID | None = None
    reversal_journal_number: str | None = None
    warnings: tuple[str, ...] = ()

    @property
    def new_state(self) -> DocumentState:
        return self.document.state

    @property
    def requires_reversal(self) -> bool:
        return self.effect.requires_reversal


class DocumentLifecycleService:
    """
    Contract:
        ``transition`` returns a LifecycleOutcome whose ``document`` carries
        the new state (and journal id once posted), or raises; on raise
        nothing was written and the caller's document keeps its state.

    Non-goals:
        - Does NOT persist the document's state; the caller owns its rows.
        - Does NOT call ``session.commit()``.
    """

    def __init__(
        self,
        session: Session,
        posting_service: GLPostingService | None = None,
        reversal_service: ReversalService | None = None,
        state_machine: DocumentStateMachine | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._posting = posting_service or GLPostingService(session, clock=self._clock)
        self._reversal = reversal_service or ReversalService(
            session, self._posting, self._clock
        )
        self._machine = state_machine or DocumentStateMachine()

    @property
    def state_machine(self) -> DocumentStateMachine:
        return self._machine

    def transition(
        self,
        document: DocumentRef,
        target: DocumentState | str,
        role: Role | str,
        reason: str | None = None,
        posting: PostingRequest | None = None,
        effective_date: date | None = None,
        actor_id: UUID | None = None,
    ) -> LifecycleOutcome:
        """
        Move ``document`` to ``target`` and apply the ledger effect.

        Args:
            posting: Journal to post when the document reaches approved or
                completed without a journal yet.
            effective_date: Reversal date; defaults to today.

        Raises:
            TransitionError: the state machine refused the move.
            PostingKernelError: posting or reversal failed.
        """
        with LogContext.bind(
            document_type=document.document_type,
            document_id=document.document_id,
            actor_id=actor_id,
        ):
            effect = self._machine.transition(document.state, target, role, reason)

            warnings: list[str] = []
            journal_id = document.journal_id
            journal_number = None
            reversal_id = None
            reversal_number = None

            with self._session.begin_nested():
                if effect.requires_reversal:
                    if document.journal_id is None:
                        warnings.append(
                            f"{document.document_type} {document.document_id} "
                            "has no journal to reverse"
                        )
                    else:
                        receipt = self._reversal.reverse(
                            document.journal_id,
                            effective_date or self._clock.today(),
                            effect.reason or "",
                            actor_id,
                        )
                        reversal_id = receipt.journal_id
                        reversal_number = receipt.journal_number
                        warnings.extend(receipt.warnings)
                elif posting is not None:
                    if effect.to_state not in _POSTING_TARGETS:
                        warnings.append(
                            f"posting ignored for transition to {effect.to_state.value}"
                        )
                    elif document.journal_id is not None:
                        warnings.append(
                            f"{document.document_type} {document.document_id} "
                            "is already posted"
                        )
                    else:
                        receipt = self._posting.post(posting)
                        journal_id = receipt.journal_id
                        journal_number = receipt.journal_number
                        warnings.extend(receipt.warnings)

            logger.info(
                "document_transitioned",
                extra={
                    "from_state": effect.from_state.value,
                    "to_state": effect.to_state.value,
                    "journal_number": journal_number,
                    "reversal_journal_number": reversal_number,
                },
            )
            return LifecycleOutcome(
                document=replace(document, state=effect.to_state, journal_id=journal_id),
                effect=effect,
                journal_id=journal_id,
                journal_number=journal_number,
                reversal_journal_id=reversal_id,
                reversal_journal_number=reversal_number,
                warnings=tuple(warnings),
            )

    def approve_and_post(
        self,
        document: DocumentRef,
        business_document: object,
        mapping: AccountRoleMapping,
        role: Role | str,
        rule: BasePostingRule | None = None,
        actor_id: UUID | None = None,
    ) -> LifecycleOutcome:
        """
        Approve a pending document and post the journal its rule implies.

        The move is checked before the request is built, so an illegal
        approval reports the TransitionError rather than a mapping error.
        """
        self._machine.transition(document.state, DocumentState.APPROVED, role)
        return self.transition(
            document,
            DocumentState.APPROVED,
            role,
            posting=build_posting_request(business_document, mapping, rule),
            actor_id=actor_id,
        )

    def cancel(
        self,
        document: DocumentRef,
        role: Role | str,
        reason: str,
        effective_date: date | None = None,
        actor_id: UUID | None = None,
    ) -> LifecycleOutcome:
        """Cancel a document, reversing its journal when it was posted."""
        return self.transition(
            document,
            DocumentState.CANCELLED,
            role,
            reason=reason,
            effective_date=effective_date,
            actor_id=actor_id,
        )
