"""
ReversalService tests.

Tests cover:
- Mirror image: debit and credit swapped, same accounts, same order
- Balances return to their pre-posting values
- Linkage: reversal_of_id, is_reversed, find_reversal
- The original entry is untouched
- Error paths: unknown entry, already reversed, reversing a reversal
- Audit trail of reversals
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from posting_kernel.exceptions import AlreadyReversedError, JournalNotFoundError
from posting_kernel.models.audit_event import AuditEntityType
from posting_kernel.models.journal import JournalEntry, JournalLine
from posting_kernel.services.reversal_service import REVERSAL_SOURCE_TYPE


@pytest.fixture
def posted_invoice(posting_service, seeded_company, make_request):
    """A posted sales invoice: AR 1050 / Sales 1000 / VAT 50."""
    return posting_service.post(make_request(
        [("1200", 1050, 0), ("4100", 0, 1000), ("2200", 0, 50)],
        description="Invoice INV-25-00001",
        source_doc_type="sales_invoice",
    ))


def _lines(session, journal_id):
    return session.execute(
        select(JournalLine)
        .where(JournalLine.journal_entry_id == journal_id)
        .order_by(JournalLine.line_number)
    ).scalars().all()


class TestReverse:

    def test_reversal_mirrors_lines(self, session, reversal_service, posted_invoice):
        receipt = reversal_service.reverse(posted_invoice.journal_id, reason="customer dispute")

        original = _lines(session, posted_invoice.journal_id)
        mirrored = _lines(session, receipt.journal_id)
        assert [l.account_id for l in mirrored] == [l.account_id for l in original]
        assert [(l.debit, l.credit) for l in mirrored] == [(l.credit, l.debit) for l in original]
        assert receipt.is_reversal
        assert receipt.journal_number == "JV-25-00002"

    def test_balances_restored(
        self, reversal_service, ledger_selector, company_id, seeded_company, posted_invoice
    ):
        reversal_service.reverse(posted_invoice.journal_id, reason="customer dispute")

        for code in ("1200", "4100", "2200"):
            assert ledger_selector.stored_balance(company_id, seeded_company[code].id) == 0
        assert ledger_selector.balance_drift(company_id) == []

    def test_reversal_header(self, session, reversal_service, posted_invoice, test_actor_id):
        receipt = reversal_service.reverse(
            posted_invoice.journal_id,
            reversal_date=date(2025, 3, 15),
            reason="customer dispute",
            actor_id=test_actor_id,
        )

        entry = session.get(JournalEntry, receipt.journal_id)
        assert entry.is_reversal
        assert entry.reversal_of_id == posted_invoice.journal_id
        assert entry.journal_date == date(2025, 3, 15)
        assert entry.source_doc_type == REVERSAL_SOURCE_TYPE
        assert entry.source_doc_number == posted_invoice.journal_number
        assert entry.description == f"Reversal of {posted_invoice.journal_number}: customer dispute"

    def test_original_is_untouched(self, session, reversal_service, journal_selector, posted_invoice):
        before = journal_selector.get(posted_invoice.journal_id)

        reversal_service.reverse(posted_invoice.journal_id, reason="customer dispute")

        after = journal_selector.get(posted_invoice.journal_id)
        assert after.lines == before.lines
        assert after.total_debit == before.total_debit
        assert after.status == before.status == "posted"
        assert not after.is_reversal
        assert after.is_reversed

    def test_line_descriptions_are_kept(self, session, reversal_service, posted_invoice):
        receipt = reversal_service.reverse(posted_invoice.journal_id, reason="dup")

        descriptions = [l.description for l in _lines(session, receipt.journal_id)]
        assert descriptions == [l.description for l in _lines(session, posted_invoice.journal_id)]

    def test_linkage_queries(self, reversal_service, journal_selector, posted_invoice):
        assert not reversal_service.is_reversed(posted_invoice.journal_id)

        receipt = reversal_service.reverse(posted_invoice.journal_id, reason="dup")

        assert reversal_service.is_reversed(posted_invoice.journal_id)
        assert reversal_service.find_reversal(posted_invoice.journal_id).id == receipt.journal_id
        assert journal_selector.reversal_of(posted_invoice.journal_id).journal_number == receipt.journal_number


class TestReverseErrors:

    def test_unknown_entry(self, reversal_service, seeded_company):
        with pytest.raises(JournalNotFoundError):
            reversal_service.reverse(uuid4(), reason="nothing there")

    def test_second_reversal_refused(self, session, reversal_service, posted_invoice):
        first = reversal_service.reverse(posted_invoice.journal_id, reason="dup")

        with pytest.raises(AlreadyReversedError) as exc_info:
            reversal_service.reverse(posted_invoice.journal_id, reason="again")

        assert first.journal_number in exc_info.value.reason
        count = session.execute(
            select(JournalEntry).where(JournalEntry.reversal_of_id == posted_invoice.journal_id)
        ).scalars().all()
        assert len(count) == 1

    def test_reversal_cannot_be_reversed(self, reversal_service, posted_invoice):
        reversal = reversal_service.reverse(posted_invoice.journal_id, reason="dup")

        with pytest.raises(AlreadyReversedError) as exc_info:
            reversal_service.reverse(reversal.journal_id, reason="undo the undo")

        assert exc_info.value.code == "ALREADY_REVERSED"

    def test_try_reverse_reports_failure(self, reversal_service, posted_invoice):
        assert reversal_service.try_reverse(posted_invoice.journal_id, reason="dup").success

        result = reversal_service.try_reverse(posted_invoice.journal_id, reason="dup")

        assert not result.success
        assert result.error_code == "ALREADY_REVERSED"


class TestReversalAudit:

    def test_reversal_is_audited(self, reversal_service, auditor_service, posted_invoice, captured_logs):
        receipt = reversal_service.reverse(posted_invoice.journal_id, reason="customer dispute")

        trace = auditor_service.trace(AuditEntityType.JOURNAL_REVERSAL.value, receipt.journal_id)

        assert len(trace) == 1
        assert trace[0].payload["reversal_of_id"] == str(posted_invoice.journal_id)
        assert auditor_service.validate_chain()
        assert any(r["message"] == "journal_reversed" for r in captured_logs())

    def test_reversal_uses_system_entry_type(self, session, reversal_service, posted_invoice):
        # AR and VAT refuse manual entries; the reversal must still go through
        receipt = reversal_service.reverse(posted_invoice.journal_id, reason="dup")

        assert session.get(JournalEntry, receipt.journal_id).entry_type == "system"


def test_reversal_of_multi_entry_day(
    reversal_service, posting_service, ledger_selector, company_id, seeded_company, make_request
):
    first = posting_service.post(make_request([("1110", 100, 0), ("3100", 0, 100)]))
    posting_service.post(make_request([("1110", 25, 0), ("4200", 0, 25)]))

    reversal_service.reverse(first.journal_id, reason="posted twice")

    assert ledger_selector.stored_balance(company_id, seeded_company["1110"].id) == Decimal("25")
    assert ledger_selector.stored_balance(company_id, seeded_company["3100"].id) == 0
