"""
AuditorService tests.

Tests cover:
- Events chain through prev_hash in sequence order
- validate_chain detects tampering done below the ORM
- Traces per entity
"""

from uuid import uuid4

import pytest
from sqlalchemy import select, update

from posting_kernel.exceptions import AuditChainBrokenError
from posting_kernel.models.audit_event import AuditAction, AuditEvent


def _events(session) -> list[AuditEvent]:
    return list(session.execute(select(AuditEvent).order_by(AuditEvent.seq)).scalars())


class TestChain:

    def test_events_are_linked(self, session, auditor_service, test_actor_id):
        first = auditor_service.record("number_series", "s-1", AuditAction.CREATE, {"k": 1}, test_actor_id)
        second = auditor_service.record("number_series", "s-1", "UPDATE", {"k": 2}, test_actor_id)

        assert first.prev_hash is None
        assert second.prev_hash == first.hash
        assert second.seq == first.seq + 1
        assert auditor_service.validate_chain()

    def test_empty_chain_is_valid(self, auditor_service):
        assert auditor_service.validate_chain()

    def test_payload_tamper_detected(self, session, auditor_service):
        auditor_service.record("number_series", "s-1", AuditAction.CREATE, {"amount": "10"})
        auditor_service.record("number_series", "s-1", AuditAction.UPDATE, {"amount": "20"})
        target = _events(session)[0]

        # Core UPDATE bypasses the ORM listeners, as a direct SQL edit would
        session.execute(
            update(AuditEvent).where(AuditEvent.id == target.id).values(payload={"amount": "99"})
        )
        session.expire_all()

        with pytest.raises(AuditChainBrokenError) as exc_info:
            auditor_service.validate_chain()

        assert exc_info.value.event_id == str(target.id)

    def test_broken_link_detected(self, session, auditor_service):
        auditor_service.record("number_series", "s-1", AuditAction.CREATE, {})
        auditor_service.record("number_series", "s-2", AuditAction.CREATE, {})
        second = _events(session)[1]

        session.execute(
            update(AuditEvent).where(AuditEvent.id == second.id).values(prev_hash="0" * 64)
        )
        session.expire_all()

        with pytest.raises(AuditChainBrokenError):
            auditor_service.validate_chain()

    def test_postings_keep_chain_valid(
        self, auditor_service, posting_service, reversal_service, seeded_company, make_request
    ):
        receipt = posting_service.post(make_request([("1110", 10, 0), ("3100", 0, 10)]))
        reversal_service.reverse(receipt.journal_id, reason="test")

        assert auditor_service.validate_chain()


class TestTrace:

    def test_trace_per_entity(self, auditor_service):
        entity = uuid4()
        auditor_service.record("journal_posting", entity, AuditAction.CREATE, {"n": 1})
        auditor_service.record("journal_posting", uuid4(), AuditAction.CREATE, {"n": 2})

        trace = auditor_service.trace("journal_posting", entity)

        assert [t.payload for t in trace] == [{"n": 1}]
        assert trace[0].action == "CREATE"

    def test_actor_defaults_to_system(self, auditor_service):
        event = auditor_service.record("number_series", "s-1", AuditAction.CREATE, {})
        assert event.actor_id.int == 0

    def test_unknown_action_refused(self, auditor_service):
        with pytest.raises(ValueError):
            auditor_service.record("number_series", "s-1", "DELETE", {})
