"""
ReversalService -- undo a posted journal by posting its mirror image.

Responsibility:
    Loads an original journal entry, refuses entries that are reversals
    themselves or already reversed, swaps debit and credit on every line
    and posts the result through GLPostingService with a back-reference.

Architecture position:
    Kernel > Services.  Thin orchestrator over GLPostingService; it never
    writes journals or balances itself.

Invariants enforced:
    - The original entry is never modified.  "Reversed" is derived from the
      existence of a row with reversal_of_id = original.id.
    - At most one reversal per entry (unique reversal_of_id).
    - Reversal lines keep the original line order and account.

Failure modes:
    - JournalNotFoundError: unknown original id.
    - AlreadyReversedError: original is a reversal, or has one already.
    - Any PostingError raised by the posting engine for the mirrored lines.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from posting_kernel.domain.clock import Clock
from posting_kernel.domain.dtos import (
    EntryType,
    PostingLine,
    PostingReceipt,
    PostingRequest,
    PostingResult,
)
from posting_kernel.exceptions import (
    AlreadyReversedError,
    JournalNotFoundError,
    PostingKernelError,
)
from posting_kernel.logging_config import LogContext, get_logger
from posting_kernel.models.journal import JournalEntry, JournalLine
from posting_kernel.services.base import BaseService
from posting_kernel.services.posting_service import GLPostingService

logger = get_logger("services.reversal")

REVERSAL_SOURCE_TYPE = "reversal"


def reversal_description(journal_number: str, reason: str) -> str:
    return f"Reversal of {journal_number}: {reason}"


class ReversalService(BaseService):
    """
    Contract:
        ``reverse`` returns the PostingReceipt of the new reversal entry.
        After it, every account touched by the original is back at its
        pre-original balance (plus whatever else was posted meanwhile).

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does NOT support partial reversals.
    """

    def __init__(
        self,
        session: Session,
        posting_service: GLPostingService | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._posting = posting_service or GLPostingService(session, clock=self._clock)

    def reverse(
        self,
        original_journal_id: UUID,
        reversal_date: date | None = None,
        reason: str = "",
        actor_id: UUID | None = None,
    ) -> PostingReceipt:
        """
        Post the mirror image of ``original_journal_id``.

        Raises:
            JournalNotFoundError: no such journal entry.
            AlreadyReversedError: the entry is a reversal or already reversed.
        """
        with LogContext.bind(journal_id=original_journal_id, actor_id=actor_id):
            original = self._session.get(JournalEntry, original_journal_id)
            if original is None:
                raise JournalNotFoundError(str(original_journal_id))

            if original.is_reversal:
                logger.warning(
                    "reversal_rejected",
                    extra={"journal_number": original.journal_number,
                           "reason": "entry is a reversal"},
                )
                raise AlreadyReversedError(str(original.id), "entry is itself a reversal")

            existing = self.find_reversal(original.id)
            if existing is not None:
                logger.warning(
                    "reversal_rejected",
                    extra={"journal_number": original.journal_number,
                           "reason": "already reversed",
                           "reversal_number": existing.journal_number},
                )
                raise AlreadyReversedError(
                    str(original.id), f"already reversed by {existing.journal_number}"
                )

            request = self.build_reversal_request(
                original, reversal_date or self._clock.today(), reason, actor_id
            )
            receipt = self._posting.post(request)

            logger.info(
                "journal_reversed",
                extra={
                    "original_journal_number": original.journal_number,
                    "reversal_journal_number": receipt.journal_number,
                    "reason": reason,
                },
            )
            return receipt

    def try_reverse(
        self,
        original_journal_id: UUID,
        reversal_date: date | None = None,
        reason: str = "",
        actor_id: UUID | None = None,
    ) -> PostingResult:
        """``reverse`` reporting failures as a PostingResult."""
        try:
            return PostingResult.ok(
                self.reverse(original_journal_id, reversal_date, reason, actor_id)
            )
        except PostingKernelError as exc:
            return PostingResult.from_error(exc)

    def is_reversed(self, journal_id: UUID) -> bool:
        return self.find_reversal(journal_id) is not None

    def find_reversal(self, journal_id: UUID) -> JournalEntry | None:
        return self._session.execute(
            select(JournalEntry).where(JournalEntry.reversal_of_id == journal_id)
        ).scalar_one_or_none()

    def build_reversal_request(
        self,
        original: JournalEntry,
        reversal_date: date,
        reason: str,
        actor_id: UUID | None = None,
    ) -> PostingRequest:
        lines = tuple(
            PostingLine(
                account_id=line.account_id,
                debit=line.debit,
                credit=line.credit,
                description=line.description,
                cost_center=line.cost_center,
                project=line.project,
            ).mirrored()
            for line in self._session.execute(
                select(JournalLine)
                .where(JournalLine.journal_entry_id == original.id)
                .order_by(JournalLine.line_number)
            ).scalars()
        )
        return PostingRequest(
            company_id=original.company_id,
            source_doc_type=REVERSAL_SOURCE_TYPE,
            source_doc_id=str(original.id),
            source_doc_number=original.journal_number,
            posting_date=reversal_date,
            description=reversal_description(original.journal_number, reason),
            lines=lines,
            branch_id=original.branch_id,
            # The original already passed its manual-entry check
            entry_type=EntryType.SYSTEM,
            actor_id=actor_id,
            is_reversal=True,
            reversal_of_id=original.id,
        )
