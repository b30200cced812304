"""
Typed exception hierarchy for the posting kernel.

Every error carries a machine-readable ``code`` class attribute and keeps
its context as structured attributes, so callers catch by type and read
fields instead of parsing messages.

    PostingKernelError (base)
    |
    +-- PostingError
    |   +-- EmptyEntryError
    |   +-- UnbalancedEntryError
    |   +-- UnknownAccountError
    |   +-- ManualEntryForbiddenError
    |   +-- InvalidLineAmountError
    |
    +-- NumberingError
    |   +-- SeriesNotFoundError
    |   +-- SeriesLockedError
    |   +-- InvalidSeriesConfigError
    |   +-- DuplicateNumberRiskError
    |   +-- AllocationNotFoundError
    |
    +-- AccountError
    |   +-- AccountNotFoundError
    |   +-- DuplicateAccountCodeError
    |
    +-- TransitionError
    |   +-- IllegalTransitionError
    |   +-- UnauthorizedRoleError
    |   +-- ReasonRequiredError
    |   +-- InvalidDocumentStateError
    |
    +-- ReversalError
    |   +-- AlreadyReversedError
    |   +-- JournalNotFoundError
    |
    +-- ConfigurationError
    |   +-- MissingAccountRoleError
    |   +-- ConfigLoadError
    |   +-- RoleMappingCompanyMismatchError
    |
    +-- AuditChainBrokenError
    |
    +-- ImmutabilityViolationError

Category        | Code                     | When Raised
----------------|--------------------------|-----------------------------------------
Posting         | EMPTY_ENTRY              | No lines supplied
                | UNBALANCED_ENTRY         | Debits and credits differ by > 0.01
                | UNKNOWN_ACCOUNT          | Account missing, inactive, other company
                | MANUAL_ENTRY_FORBIDDEN   | Manual entry against a system account
                | INVALID_LINE_AMOUNT      | Negative amount or both sides non-zero
----------------|--------------------------|-----------------------------------------
Numbering       | SERIES_NOT_FOUND         | No active series (fallback path)
                | SERIES_LOCKED            | Series is locked for allocation
                | INVALID_SERIES_CONFIG    | Format/reset settings are inconsistent
                | DUPLICATE_NUMBER_RISK    | Counter could not be advanced safely
                | ALLOCATION_NOT_FOUND     | Number was never issued
----------------|--------------------------|-----------------------------------------
Account         | ACCOUNT_NOT_FOUND        | Account id does not exist
                | DUPLICATE_ACCOUNT_CODE   | Code already used in the company
----------------|--------------------------|-----------------------------------------
Transition      | ILLEGAL_TRANSITION       | (from, to) pair not in the table
                | UNAUTHORIZED_ROLE        | Role not allowed for the transition
                | REASON_REQUIRED          | Transition requires a reason
                | INVALID_DOCUMENT_STATE   | Unknown state value at the boundary
----------------|--------------------------|-----------------------------------------
Reversal        | ALREADY_REVERSED         | Entry reversed, or is itself a reversal
                | JOURNAL_NOT_FOUND        | Journal id does not exist
----------------|--------------------------|-----------------------------------------
Configuration   | MISSING_ACCOUNT_ROLE     | Posting rule needs an unmapped role
                | CONFIG_LOAD_ERROR        | YAML file missing or malformed
----------------|--------------------------|-----------------------------------------
Audit           | AUDIT_CHAIN_BROKEN       | Stored audit hash or link does not recompute
----------------|--------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION   | Modifying a posted or audit record
"""


class PostingKernelError(Exception):
    """
    Base exception for all posting kernel errors.

    All subclasses must have a ``code`` class attribute.
    """

    code: str = "POSTING_KERNEL_ERROR"


# Posting-related exceptions


class PostingError(PostingKernelError):
    """Base exception for posting-related errors."""

    code: str = "POSTING_ERROR"


class EmptyEntryError(PostingError):
    """Posting request carries no lines."""

    code: str = "EMPTY_ENTRY"

    def __init__(self) -> None:
        super().__init__("Journal entry must contain at least one line")


class UnbalancedEntryError(PostingError):
    """Journal entry debits do not equal credits."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, total_debit: str, total_credit: str):
        self.total_debit = total_debit
        self.total_credit = total_credit
        super().__init__(
            f"Unbalanced entry: debits={total_debit}, credits={total_credit}"
        )


class UnknownAccountError(PostingError):
    """Account does not resolve to an active account of the company."""

    code: str = "UNKNOWN_ACCOUNT"

    def __init__(self, account: str, reason: str = "not found"):
        self.account = account
        self.reason = reason
        super().__init__(f"Unknown account {account}: {reason}")


class ManualEntryForbiddenError(PostingError):
    """Manual journal entry against an account that disallows it."""

    code: str = "MANUAL_ENTRY_FORBIDDEN"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(
            f"Account {account_code} does not allow manual journal entries"
        )


class InvalidLineAmountError(PostingError):
    """Line amounts are negative or populate both sides."""

    code: str = "INVALID_LINE_AMOUNT"

    def __init__(self, line_number: int, reason: str):
        self.line_number = line_number
        self.reason = reason
        super().__init__(f"Invalid amount on line {line_number}: {reason}")


# Numbering-related exceptions


class NumberingError(PostingKernelError):
    """Base exception for number series errors."""

    code: str = "NUMBERING_ERROR"


class SeriesNotFoundError(NumberingError):
    """No active number series exists for the document type."""

    code: str = "SERIES_NOT_FOUND"

    def __init__(self, company_id: str, document_type_key: str, scope_ref: str = ""):
        self.company_id = company_id
        self.document_type_key = document_type_key
        self.scope_ref = scope_ref
        scope = f" (scope {scope_ref})" if scope_ref else ""
        super().__init__(
            f"No active number series {document_type_key}{scope} "
            f"for company {company_id}"
        )


class SeriesLockedError(NumberingError):
    """Number series is locked and refuses allocation."""

    code: str = "SERIES_LOCKED"

    def __init__(self, series_id: str, document_type_key: str):
        self.series_id = series_id
        self.document_type_key = document_type_key
        super().__init__(f"Number series {document_type_key} ({series_id}) is locked")


class InvalidSeriesConfigError(NumberingError):
    """Number series configuration is inconsistent."""

    code: str = "INVALID_SERIES_CONFIG"

    def __init__(self, document_type_key: str, errors: list[str]):
        self.document_type_key = document_type_key
        self.errors = errors
        super().__init__(
            f"Invalid number series {document_type_key}: {'; '.join(errors)}"
        )


class DuplicateNumberRiskError(NumberingError):
    """The counter could not be advanced without risking a duplicate number."""

    code: str = "DUPLICATE_NUMBER_RISK"

    def __init__(self, document_type_key: str, number: str | None, reason: str):
        self.document_type_key = document_type_key
        self.number = number
        self.reason = reason
        super().__init__(
            f"Refusing to issue number for {document_type_key}: {reason}"
        )


class AllocationNotFoundError(NumberingError):
    """The document number was never allocated."""

    code: str = "ALLOCATION_NOT_FOUND"

    def __init__(self, company_id: str, number: str):
        self.company_id = company_id
        self.number = number
        super().__init__(f"Number {number} was not allocated for company {company_id}")


# Account-related exceptions


class AccountError(PostingKernelError):
    """Base exception for chart-of-accounts errors."""

    code: str = "ACCOUNT_ERROR"


class AccountNotFoundError(AccountError):
    """Account does not exist."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class DuplicateAccountCodeError(AccountError):
    """Account code is already used within the company."""

    code: str = "DUPLICATE_ACCOUNT_CODE"

    def __init__(self, company_id: str, account_code: str):
        self.company_id = company_id
        self.account_code = account_code
        super().__init__(
            f"Account code {account_code} already exists for company {company_id}"
        )


# Transition-related exceptions


class TransitionError(PostingKernelError):
    """Base exception for document state transition errors."""

    code: str = "TRANSITION_ERROR"


class IllegalTransitionError(TransitionError):
    """The (current, target) pair is not in the transition table."""

    code: str = "ILLEGAL_TRANSITION"

    def __init__(self, current_state: str, target_state: str):
        self.current_state = current_state
        self.target_state = target_state
        super().__init__(
            f"Transition from {current_state} to {target_state} is not allowed"
        )


class UnauthorizedRoleError(TransitionError):
    """The role is not permitted to perform the transition."""

    code: str = "UNAUTHORIZED_ROLE"

    def __init__(self, role: str, current_state: str, target_state: str):
        self.role = role
        self.current_state = current_state
        self.target_state = target_state
        super().__init__(
            f"Role {role} may not move a document from {current_state} "
            f"to {target_state}"
        )


class ReasonRequiredError(TransitionError):
    """The transition requires a reason and none was supplied."""

    code: str = "REASON_REQUIRED"

    def __init__(self, current_state: str, target_state: str):
        self.current_state = current_state
        self.target_state = target_state
        super().__init__(
            f"A reason is required to move from {current_state} to {target_state}"
        )


class InvalidDocumentStateError(TransitionError):
    """A state value outside the closed set was supplied."""

    code: str = "INVALID_DOCUMENT_STATE"

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Unknown document state: {value!r}")


# Reversal-related exceptions


class ReversalError(PostingKernelError):
    """Base exception for reversal errors."""

    code: str = "REVERSAL_ERROR"


class AlreadyReversedError(ReversalError):
    """Entry was already reversed, or is itself a reversal."""

    code: str = "ALREADY_REVERSED"

    def __init__(self, journal_id: str, reason: str):
        self.journal_id = journal_id
        self.reason = reason
        super().__init__(f"Cannot reverse journal {journal_id}: {reason}")


class JournalNotFoundError(ReversalError):
    """Journal entry does not exist."""

    code: str = "JOURNAL_NOT_FOUND"

    def __init__(self, journal_id: str):
        self.journal_id = journal_id
        super().__init__(f"Journal entry not found: {journal_id}")


# Configuration-related exceptions


class ConfigurationError(PostingKernelError):
    """Base exception for configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class MissingAccountRoleError(ConfigurationError):
    """A posting rule needs an account role that is not mapped."""

    code: str = "MISSING_ACCOUNT_ROLE"

    def __init__(self, role: str, rule: str | None = None):
        self.role = role
        self.rule = rule
        where = f" (required by {rule})" if rule else ""
        super().__init__(f"No account mapped for role {role}{where}")


class ConfigLoadError(ConfigurationError):
    """Configuration file is missing or malformed."""

    code: str = "CONFIG_LOAD_ERROR"

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot load configuration {path}: {reason}")


class RoleMappingCompanyMismatchError(ConfigurationError):
    """A role mapping was applied to a document of another company."""

    code: str = "ROLE_MAPPING_COMPANY_MISMATCH"

    def __init__(self, mapping_company_id: str, document_company_id: str):
        self.mapping_company_id = mapping_company_id
        self.document_company_id = document_company_id
        super().__init__(
            f"Role mapping belongs to company {mapping_company_id}, "
            f"document to {document_company_id}"
        )


# Immutability


class ImmutabilityViolationError(PostingKernelError):
    """
    Attempted to modify or delete an immutable record.

    Journal lines and audit events never change; journal entries may only
    change status; account balances change only through posting.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Audit


class AuditChainBrokenError(PostingKernelError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, event_id: str, expected: str, actual: str):
        self.event_id = event_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Audit chain broken at {event_id}: expected {expected}, got {actual}"
        )
