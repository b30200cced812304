"""Tests for the document lifecycle state machine (pure, no database)."""

import pytest

from posting_kernel.domain.document_state import (
    DOCUMENT_WORKFLOW,
    DocumentState,
    DocumentStateMachine,
    Role,
)
from posting_kernel.exceptions import (
    IllegalTransitionError,
    InvalidDocumentStateError,
    ReasonRequiredError,
    UnauthorizedRoleError,
)

D = DocumentState

LEGAL_PAIRS = {
    (D.DRAFT, D.PENDING),
    (D.DRAFT, D.CANCELLED),
    (D.PENDING, D.APPROVED),
    (D.PENDING, D.REJECTED),
    (D.PENDING, D.DRAFT),
    (D.APPROVED, D.COMPLETED),
    (D.APPROVED, D.CANCELLED),
    (D.REJECTED, D.DRAFT),
    (D.COMPLETED, D.CANCELLED),
}


@pytest.fixture
def machine():
    return DocumentStateMachine()


class TestTransitionTable:

    def test_table_has_exactly_the_legal_pairs(self):
        assert {(r.from_state, r.to_state) for r in DOCUMENT_WORKFLOW.rules} == LEGAL_PAIRS

    @pytest.mark.parametrize("current", list(D))
    @pytest.mark.parametrize("target", list(D))
    def test_every_missing_pair_is_illegal(self, machine, current, target):
        if (current, target) in LEGAL_PAIRS:
            return
        with pytest.raises(IllegalTransitionError):
            machine.transition(current, target, Role.ADMIN, reason="because")

    def test_draft_to_completed_is_illegal(self, machine):
        decision = machine.check("draft", "completed", "admin")

        assert not decision.success
        assert decision.error_code == "ILLEGAL_TRANSITION"
        assert not decision.requires_reversal

    def test_cancelled_is_terminal(self, machine):
        assert machine.available_transitions(D.CANCELLED, Role.ADMIN) == ()


class TestRoles:

    def test_user_cannot_approve(self, machine):
        with pytest.raises(UnauthorizedRoleError) as exc_info:
            machine.transition(D.PENDING, D.APPROVED, Role.USER)
        assert exc_info.value.role == "user"

    def test_manager_can_approve(self, machine):
        effect = machine.transition(D.PENDING, D.APPROVED, Role.MANAGER)
        assert effect.requires_approval
        assert not effect.requires_reversal

    def test_only_admin_cancels_completed(self, machine):
        with pytest.raises(UnauthorizedRoleError):
            machine.transition(D.COMPLETED, D.CANCELLED, Role.MANAGER, reason="refund")
        assert machine.transition(D.COMPLETED, D.CANCELLED, Role.ADMIN, reason="refund").requires_reversal

    def test_unknown_role_is_unauthorized(self, machine):
        with pytest.raises(UnauthorizedRoleError):
            machine.transition(D.DRAFT, D.PENDING, "auditor")

    def test_table_is_checked_before_role(self, machine):
        with pytest.raises(IllegalTransitionError):
            machine.transition(D.DRAFT, D.APPROVED, "auditor")

    def test_available_transitions_follow_role(self, machine):
        assert machine.available_transitions(D.PENDING, Role.USER) == (D.DRAFT,)
        assert machine.available_transitions(D.PENDING, Role.MANAGER) == (
            D.APPROVED, D.REJECTED, D.DRAFT,
        )

    def test_can_transition(self, machine):
        assert machine.can_transition(D.APPROVED, D.COMPLETED, "user")
        assert not machine.can_transition(D.APPROVED, D.CANCELLED, "user")
        assert not machine.can_transition(D.DRAFT, D.COMPLETED, "admin")
        assert not machine.can_transition(D.DRAFT, D.PENDING, "nobody")


class TestReasons:

    @pytest.mark.parametrize("reason", [None, "", "   "])
    def test_reason_required(self, machine, reason):
        with pytest.raises(ReasonRequiredError):
            machine.transition(D.PENDING, D.REJECTED, Role.MANAGER, reason=reason)

    def test_reason_is_trimmed(self, machine):
        effect = machine.transition(D.DRAFT, D.CANCELLED, Role.USER, reason="  duplicate  ")
        assert effect.reason == "duplicate"

    def test_reason_optional_elsewhere(self, machine):
        assert machine.transition(D.DRAFT, D.PENDING, Role.USER).reason is None
        assert machine.requires_reason(D.APPROVED, D.CANCELLED)
        assert not machine.requires_reason(D.DRAFT, D.PENDING)


class TestReversalFlag:

    def test_cancelling_approved_requires_reversal(self, machine):
        decision = machine.check(D.APPROVED, D.CANCELLED, Role.MANAGER, reason="customer dispute")

        assert decision.success
        assert decision.requires_reversal
        assert decision.effect.to_state is D.CANCELLED

    def test_cancelling_draft_does_not(self, machine):
        effect = machine.transition(D.DRAFT, D.CANCELLED, Role.USER, reason="typo")
        assert not effect.requires_reversal

    def test_only_posted_states_reverse(self):
        reversing = {(r.from_state, r.to_state) for r in DOCUMENT_WORKFLOW.rules if r.requires_reversal}
        assert reversing == {(D.APPROVED, D.CANCELLED), (D.COMPLETED, D.CANCELLED)}


class TestStateParsing:

    def test_strings_are_accepted(self, machine):
        effect = machine.transition(" Pending ", "APPROVED", "Manager")
        assert effect.from_state is D.PENDING
        assert effect.to_state is D.APPROVED

    def test_helpers_normalize_roles_like_transition(self, machine):
        assert machine.can_transition(D.COMPLETED, D.CANCELLED, " Admin ")
        assert machine.available_transitions(D.PENDING, "MANAGER") == (
            machine.available_transitions(D.PENDING, Role.MANAGER)
        )
        assert machine.available_transitions(D.PENDING, "Nobody") == ()

    def test_unknown_state(self, machine):
        with pytest.raises(InvalidDocumentStateError) as exc_info:
            machine.transition("archived", "draft", Role.ADMIN)
        assert exc_info.value.value == "archived"

    def test_check_reports_unknown_state(self, machine):
        decision = machine.check("draft", "shipped", Role.ADMIN)
        assert decision.error_code == "INVALID_DOCUMENT_STATE"

    def test_labels(self, machine):
        assert machine.label("pending") == "Pending Approval"
