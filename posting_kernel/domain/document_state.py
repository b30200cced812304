"""
Document lifecycle state machine (``posting_kernel.domain.document_state``).

Responsibility
--------------
Decides whether a business document may move from one status to another,
for which roles, and whether the move needs a reason, an approval, or a
reversal of the document's journal entry.  Holds no state; documents
store only their current status.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects and a pure decision
function.  No I/O.

Transition table
----------------
=========  ==========  ====================  ========  ======  ========
from       to          roles                 approval  reason  reversal
=========  ==========  ====================  ========  ======  ========
draft      pending     user, manager, admin  no        no      no
draft      cancelled   user, manager, admin  no        yes     no
pending    approved    manager, admin        yes       no      no
pending    rejected    manager, admin        yes       yes     no
pending    draft       user, manager, admin  no        yes     no
approved   completed   user, manager, admin  no        no      no
approved   cancelled   manager, admin        yes       yes     yes
rejected   draft       user, manager, admin  no        no      no
completed  cancelled   admin                 yes       yes     yes
=========  ==========  ====================  ========  ======  ========

Any pair missing from the table is illegal; there is no default move.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from posting_kernel.exceptions import (
    IllegalTransitionError,
    InvalidDocumentStateError,
    ReasonRequiredError,
    TransitionError,
    UnauthorizedRoleError,
)


class DocumentState(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Role(str, Enum):
    USER = "user"
    MANAGER = "manager"
    ADMIN = "admin"


STATE_LABELS: dict[DocumentState, str] = {
    DocumentState.DRAFT: "Draft",
    DocumentState.PENDING: "Pending Approval",
    DocumentState.APPROVED: "Approved",
    DocumentState.REJECTED: "Rejected",
    DocumentState.CANCELLED: "Cancelled",
    DocumentState.COMPLETED: "Completed",
}

# Cancelling from these states undoes a posting
_POSTED_STATES = frozenset({DocumentState.APPROVED, DocumentState.COMPLETED})

_ALL_ROLES = frozenset(Role)
_APPROVERS = frozenset({Role.MANAGER, Role.ADMIN})


@dataclass(frozen=True)
class TransitionRule:
    """One row of the transition table."""

    from_state: DocumentState
    to_state: DocumentState
    allowed_roles: frozenset[Role]
    requires_approval: bool = False
    requires_reason: bool = False

    @property
    def requires_reversal(self) -> bool:
        return (
            self.to_state == DocumentState.CANCELLED
            and self.from_state in _POSTED_STATES
        )


@dataclass(frozen=True)
class TransitionEffect:
    """What an allowed transition implies for the caller."""

    from_state: DocumentState
    to_state: DocumentState
    requires_reversal: bool
    requires_approval: bool
    reason: str | None = None


@dataclass(frozen=True)
class TransitionDecision:
    """
    Boundary response ``{success, requiresReversal, error?}``.

    Produced by ``DocumentStateMachine.check``, which never raises.
    """

    success: bool
    requires_reversal: bool = False
    effect: TransitionEffect | None = None
    error_code: str | None = None
    error_message: str | None = None


@dataclass(frozen=True)
class DocumentWorkflow:
    """A closed state machine definition."""

    name: str
    initial_state: DocumentState
    rules: tuple[TransitionRule, ...]
    terminal_states: tuple[DocumentState, ...] = ()


DOCUMENT_WORKFLOW = DocumentWorkflow(
    name="business_document",
    initial_state=DocumentState.DRAFT,
    rules=(
        TransitionRule(DocumentState.DRAFT, DocumentState.PENDING, _ALL_ROLES),
        TransitionRule(
            DocumentState.DRAFT, DocumentState.CANCELLED, _ALL_ROLES,
            requires_reason=True,
        ),
        TransitionRule(
            DocumentState.PENDING, DocumentState.APPROVED, _APPROVERS,
            requires_approval=True,
        ),
        TransitionRule(
            DocumentState.PENDING, DocumentState.REJECTED, _APPROVERS,
            requires_approval=True, requires_reason=True,
        ),
        TransitionRule(
            DocumentState.PENDING, DocumentState.DRAFT, _ALL_ROLES,
            requires_reason=True,
        ),
        TransitionRule(DocumentState.APPROVED, DocumentState.COMPLETED, _ALL_ROLES),
        TransitionRule(
            DocumentState.APPROVED, DocumentState.CANCELLED, _APPROVERS,
            requires_approval=True, requires_reason=True,
        ),
        TransitionRule(DocumentState.REJECTED, DocumentState.DRAFT, _ALL_ROLES),
        TransitionRule(
            DocumentState.COMPLETED, DocumentState.CANCELLED, frozenset({Role.ADMIN}),
            requires_approval=True, requires_reason=True,
        ),
    ),
    terminal_states=(DocumentState.CANCELLED,),
)


def parse_state(value: DocumentState | str) -> DocumentState:
    """Reject any status outside the closed set."""
    if isinstance(value, DocumentState):
        return value
    try:
        return DocumentState(str(value).strip().lower())
    except ValueError:
        raise InvalidDocumentStateError(str(value)) from None


def _normalize_role(value: Role | str) -> Role:
    if isinstance(value, Role):
        return value
    return Role(str(value).strip().lower())


def _parse_role(
    value: Role | str, current: DocumentState, target: DocumentState
) -> Role:
    try:
        return _normalize_role(value)
    except ValueError:
        raise UnauthorizedRoleError(str(value), current.value, target.value) from None


class DocumentStateMachine:
    """
    Pure decision function over a DocumentWorkflow.

    Checks are applied in order: the pair must be in the table, the role
    must be allowed, and a reason must be present when the rule wants one.
    """

    def __init__(self, workflow: DocumentWorkflow = DOCUMENT_WORKFLOW):
        self._workflow = workflow
        self._rules = {(r.from_state, r.to_state): r for r in workflow.rules}

    @property
    def workflow(self) -> DocumentWorkflow:
        return self._workflow

    def rule_for(
        self, current: DocumentState | str, target: DocumentState | str
    ) -> TransitionRule | None:
        return self._rules.get((parse_state(current), parse_state(target)))

    def transition(
        self,
        current: DocumentState | str,
        target: DocumentState | str,
        role: Role | str,
        reason: str | None = None,
    ) -> TransitionEffect:
        """
        Validate a transition and describe its effect.

        Raises:
            InvalidDocumentStateError: current or target is not a state.
            IllegalTransitionError: the pair is not in the table.
            UnauthorizedRoleError: role may not perform the move.
            ReasonRequiredError: the move needs a non-blank reason.
        """
        current_state = parse_state(current)
        target_state = parse_state(target)

        rule = self._rules.get((current_state, target_state))
        if rule is None:
            raise IllegalTransitionError(current_state.value, target_state.value)

        actor_role = _parse_role(role, current_state, target_state)
        if actor_role not in rule.allowed_roles:
            raise UnauthorizedRoleError(
                actor_role.value, current_state.value, target_state.value
            )

        cleaned = reason.strip() if reason else ""
        if rule.requires_reason and not cleaned:
            raise ReasonRequiredError(current_state.value, target_state.value)

        return TransitionEffect(
            from_state=current_state,
            to_state=target_state,
            requires_reversal=rule.requires_reversal,
            requires_approval=rule.requires_approval,
            reason=cleaned or None,
        )

    def check(
        self,
        current: DocumentState | str,
        target: DocumentState | str,
        role: Role | str,
        reason: str | None = None,
    ) -> TransitionDecision:
        """Non-raising form of ``transition``."""
        try:
            effect = self.transition(current, target, role, reason)
        except TransitionError as exc:
            return TransitionDecision(
                success=False, error_code=exc.code, error_message=str(exc)
            )
        return TransitionDecision(
            success=True, requires_reversal=effect.requires_reversal, effect=effect
        )

    def can_transition(
        self,
        current: DocumentState | str,
        target: DocumentState | str,
        role: Role | str,
    ) -> bool:
        """True if the pair exists and the role may perform it (reason not checked)."""
        rule = self.rule_for(current, target)
        if rule is None:
            return False
        try:
            return _normalize_role(role) in rule.allowed_roles
        except ValueError:
            return False

    def available_transitions(
        self, current: DocumentState | str, role: Role | str
    ) -> tuple[DocumentState, ...]:
        """Targets reachable from ``current`` for ``role``, in table order."""
        current_state = parse_state(current)
        try:
            actor_role = _normalize_role(role)
        except ValueError:
            return ()
        return tuple(
            rule.to_state
            for rule in self._workflow.rules
            if rule.from_state == current_state and actor_role in rule.allowed_roles
        )

    def requires_reason(
        self, current: DocumentState | str, target: DocumentState | str
    ) -> bool:
        rule = self.rule_for(current, target)
        return rule.requires_reason if rule else False

    def requires_approval(
        self, current: DocumentState | str, target: DocumentState | str
    ) -> bool:
        rule = self.rule_for(current, target)
        return rule.requires_approval if rule else False

    @staticmethod
    def label(state: DocumentState | str) -> str:
        return STATE_LABELS[parse_state(state)]
