"""
GLPostingService -- the single write path into the general ledger.

Responsibility:
    Validates a PostingRequest, allocates the journal number, writes the
    journal header and its lines, applies each line's net effect to the
    account's running balance, and records the audit event.  All of it
    happens in one SAVEPOINT: any failure leaves no journal, no consumed
    number, no balance change and no audit row.

Architecture position:
    Kernel > Services.  Depends on ChartOfAccountsService (lookups),
    NumberSeriesService (journal numbers), PostingValidator (pure checks)
    and an AuditSink.  Used directly by callers and by ReversalService.

Invariants enforced:
    - Every persisted entry balances within the tolerance.
    - current_balance += (debit - credit) is a server-side UPDATE, never a
      read-modify-write in Python.
    - Lines are numbered 1..n in caller order; line_number is the read order.
    - The journal number is allocated inside the same transaction.

Failure modes:
    - PostingError subclasses from validation; nothing is written.
    - SeriesLockedError / DuplicateNumberRiskError from numbering.
    - AlreadyReversedError when a reversal races another reversal of the
      same entry (unique reversal_of_id).

Audit relevance:
    One AuditEvent per posting: entity type ``journal_posting`` (or
    ``journal_reversal``), action CREATE, payload with lines, totals,
    source document and a fingerprint of the line set.
"""

from collections import defaultdict
from decimal import Decimal
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from posting_kernel.db.base import SYSTEM_ACTOR_ID
from posting_kernel.domain.clock import Clock
from posting_kernel.domain.dtos import (
    ZERO,
    PostingReceipt,
    PostingRequest,
    PostingResult,
)
from posting_kernel.domain.posting_validator import (
    DEFAULT_BALANCE_TOLERANCE,
    PostingValidator,
)
from posting_kernel.exceptions import (
    AlreadyReversedError,
    DuplicateNumberRiskError,
    PostingError,
    PostingKernelError,
)
from posting_kernel.logging_config import LogContext, get_logger
from posting_kernel.models.account import Account
from posting_kernel.models.audit_event import AuditAction, AuditEntityType
from posting_kernel.models.journal import JournalEntry, JournalEntryStatus, JournalLine
from posting_kernel.services.auditor_service import AuditorService, AuditSink
from posting_kernel.services.base import BaseService
from posting_kernel.services.chart_of_accounts_service import ChartOfAccountsService
from posting_kernel.services.number_series_service import (
    JOURNAL_SERIES_KEY,
    NumberSeriesService,
)
from posting_kernel.utils.hashing import hash_journal_lines

logger = get_logger("services.posting")


class GLPostingService(BaseService):
    """
    Contract:
        ``post`` returns a PostingReceipt or raises a PostingKernelError
        with nothing written.  ``submit`` wraps ``post`` and returns a
        PostingResult instead of raising domain errors.

    Non-goals:
        - Does NOT call ``session.commit()``; the caller owns the
          transaction boundary.
        - Does NOT build lines from business documents (see
          posting_kernel.posting_rules).
    """

    def __init__(
        self,
        session: Session,
        accounts: ChartOfAccountsService | None = None,
        numbering: NumberSeriesService | None = None,
        auditor: AuditSink | None = None,
        clock: Clock | None = None,
        tolerance: Decimal = DEFAULT_BALANCE_TOLERANCE,
    ):
        super().__init__(session, clock)
        self._accounts = accounts or ChartOfAccountsService(session, self._clock)
        self._auditor = auditor or AuditorService(session, self._clock)
        self._numbering = numbering or NumberSeriesService(session, self._clock)
        self._validator = PostingValidator(self._accounts, tolerance)

    @property
    def validator(self) -> PostingValidator:
        return self._validator

    def post(self, request: PostingRequest) -> PostingReceipt:
        """
        Post one journal entry.

        Preconditions:
            - The caller is within an active database transaction.

        Postconditions:
            - One JournalEntry with len(request.lines) JournalLines exists.
            - Each referenced account's current_balance moved by the sum
              of its lines' (debit - credit).
            - One audit event was appended.

        Raises:
            PostingError: validation failed (nothing written).
            NumberingError: the journal number could not be issued.
            AlreadyReversedError: the reversal target was reversed concurrently.
        """
        with LogContext.bind(
            company_id=request.company_id,
            actor_id=request.actor_id,
            document_type=request.source_doc_type,
            document_id=request.source_doc_id,
        ):
            logger.info(
                "posting_started",
                extra={
                    "source_doc_type": request.source_doc_type,
                    "source_doc_number": request.source_doc_number,
                    "line_count": len(request.lines),
                    "entry_type": request.entry_type.value,
                    "is_reversal": request.is_reversal,
                },
            )
            try:
                self._validator.assert_valid(
                    request.company_id, request.lines, request.entry_type
                )
                logger.info(
                    "posting_validated",
                    extra={
                        "total_debit": str(request.total_debit),
                        "total_credit": str(request.total_credit),
                    },
                )
                with self._session.begin_nested():
                    receipt = self._write(request)
            except PostingKernelError as exc:
                logger.warning(
                    "posting_rejected",
                    extra={"error_code": exc.code, "reason": str(exc)},
                )
                raise

            logger.info(
                "posting_completed",
                extra={
                    "journal_id": str(receipt.journal_id),
                    "journal_number": receipt.journal_number,
                    "total_debit": str(receipt.total_debit),
                },
            )
            return receipt

    def submit(self, request: PostingRequest) -> PostingResult:
        """Post and report the outcome as a PostingResult."""
        try:
            return PostingResult.ok(self.post(request))
        except PostingKernelError as exc:
            return PostingResult.from_error(exc)

    def validate(self, request: PostingRequest):
        """Dry-run the validator for ``request``."""
        return self._validator.validate(
            request.company_id, request.lines, request.entry_type
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _write(self, request: PostingRequest) -> PostingReceipt:
        warnings: list[str] = []

        allocated = self._numbering.allocate(
            request.company_id,
            JOURNAL_SERIES_KEY,
            reference_date=request.posting_date,
        )
        if allocated.fallback:
            warnings.append(
                f"No active {JOURNAL_SERIES_KEY} number series; "
                f"issued fallback number {allocated.number}"
            )

        actor_id = request.actor_id or SYSTEM_ACTOR_ID
        total_debit = request.total_debit
        total_credit = request.total_credit

        entry = JournalEntry(
            company_id=request.company_id,
            journal_number=allocated.number,
            journal_date=request.posting_date,
            description=request.description,
            source_doc_type=request.source_doc_type,
            source_doc_id=request.source_doc_id,
            source_doc_number=request.source_doc_number,
            total_debit=total_debit,
            total_credit=total_credit,
            status=JournalEntryStatus.POSTED,
            entry_type=request.entry_type.value,
            is_reversal=request.is_reversal,
            reversal_of_id=request.reversal_of_id,
            branch_id=request.branch_id,
            posted_at=self._clock.now(),
            created_by_id=actor_id,
        )
        self._insert_header(entry, request)

        for line_number, line in enumerate(request.lines, start=1):
            self._session.add(JournalLine(
                journal_entry_id=entry.id,
                account_id=line.account_id,
                line_number=line_number,
                debit=line.debit,
                credit=line.credit,
                description=line.description or request.description,
                cost_center=line.cost_center,
                project=line.project,
                created_by_id=actor_id,
            ))
        self._session.flush()

        self._apply_balances(request)

        line_payload = [
            {
                "line_number": n,
                "account_id": str(line.account_id),
                "debit": line.debit,
                "credit": line.credit,
                "description": line.description or request.description,
            }
            for n, line in enumerate(request.lines, start=1)
        ]
        entity_type = (
            AuditEntityType.JOURNAL_REVERSAL if request.is_reversal
            else AuditEntityType.JOURNAL_POSTING
        )
        self._auditor.record(
            entity_type=entity_type.value,
            entity_id=entry.id,
            action=AuditAction.CREATE,
            payload={
                "journal_number": entry.journal_number,
                "journal_date": request.posting_date,
                "source_doc_type": request.source_doc_type,
                "source_doc_id": request.source_doc_id,
                "source_doc_number": request.source_doc_number,
                "total_debit": total_debit,
                "total_credit": total_credit,
                "reversal_of_id": request.reversal_of_id,
                "lines": line_payload,
                "lines_hash": hash_journal_lines(entry.journal_number, line_payload),
            },
            actor_id=request.actor_id,
            company_id=request.company_id,
        )

        return PostingReceipt(
            journal_id=entry.id,
            journal_number=entry.journal_number,
            total_debit=total_debit,
            total_credit=total_credit,
            is_reversal=request.is_reversal,
            warnings=tuple(warnings),
        )

    def _insert_header(self, entry: JournalEntry, request: PostingRequest) -> None:
        try:
            with self._session.begin_nested():
                self._session.add(entry)
                self._session.flush()
        except IntegrityError as exc:
            if request.is_reversal and request.reversal_of_id is not None:
                raise AlreadyReversedError(
                    str(request.reversal_of_id), "entry already has a reversal"
                ) from exc
            raise DuplicateNumberRiskError(
                JOURNAL_SERIES_KEY, entry.journal_number, "journal number already used"
            ) from exc

    def _apply_balances(self, request: PostingRequest) -> None:
        net_by_account: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
        for line in request.lines:
            net_by_account[line.account_id] += line.net_amount

        # Sorted so concurrent postings lock accounts in the same order
        for account_id in sorted(net_by_account, key=str):
            net = net_by_account[account_id]
            if net == ZERO:
                continue
            result = self._session.execute(
                update(Account)
                .where(
                    Account.id == account_id,
                    Account.company_id == request.company_id,
                )
                .values(current_balance=Account.current_balance + net)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                # Validation saw the account; it vanished mid-transaction
                raise PostingError(f"Account {account_id} could not be updated")

        # Cached Account rows now hold stale balances
        touched = set(net_by_account)
        for obj in list(self._session.identity_map.values()):
            if isinstance(obj, Account) and obj.id in touched:
                self._session.expire(obj, ["current_balance"])
