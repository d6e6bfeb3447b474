"""
Typed Exception Hierarchy for the Petty Cash Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Approval workflows are driven from several personas (admin, HOD, finance)
through a thin transport layer. Callers need to tell "wrong state" apart from
"bad input" apart from "database down" without parsing messages:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        batches.hod_approve(batch_id, rejected_receipt_ids=[rid], ...)
    except InvalidStateTransitionError as e:
        api_response(code=e.code, state=e.current_state, action=e.action)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PettyCashError (base)
    |
    +-- NotFoundError
    |   +-- DepartmentNotFoundError
    |   +-- StaffNotFoundError
    |   +-- ReceiptNotFoundError
    |   +-- BatchNotFoundError
    |
    +-- InvalidStateTransitionError
    |
    +-- ValidationError
    |   +-- InvalidCategoryError
    |   +-- InvalidStatusError
    |   +-- InvalidActorError
    |   +-- MissingRejectionReasonError
    |   +-- InvalidAmountError
    |   +-- BatchMembershipError
    |   +-- EmptyBatchError
    |
    +-- ExternalServiceError
    |   +-- ExtractionFailedError
    |
    +-- StorageUnavailableError
    |
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                      | When Raised
--------------|---------------------------|-------------------------------------
Not found     | DEPARTMENT_NOT_FOUND      | Unknown department id
              | STAFF_NOT_FOUND           | Unknown staff id
              | RECEIPT_NOT_FOUND         | Unknown receipt id
              | BATCH_NOT_FOUND           | Unknown batch id
--------------|---------------------------|-------------------------------------
State         | INVALID_STATE_TRANSITION  | Action not allowed from current state
--------------|---------------------------|-------------------------------------
Validation    | INVALID_CATEGORY          | Category outside the closed set
              | INVALID_STATUS            | Status value outside the closed set
              | INVALID_ACTOR             | Persona may not perform the action
              | MISSING_REJECTION_REASON  | Blank rejection reason
              | INVALID_AMOUNT            | Negative amount / confidence range
              | BATCH_MEMBERSHIP          | Receipt cannot join / is not in batch
              | EMPTY_BATCH               | createBatch with no receipts
--------------|---------------------------|-------------------------------------
External      | EXTRACTION_FAILED         | AI extraction call failed
--------------|---------------------------|-------------------------------------
Storage       | STORAGE_UNAVAILABLE       | Database unreachable during a write
--------------|---------------------------|-------------------------------------
Immutability  | IMMUTABILITY_VIOLATION    | Update/delete of an activity log row

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Validation and not-found errors are raised before any write. The caller's
   session is left clean.

2. InvalidStateTransitionError is also what the loser of two concurrent
   approvals receives; it is safe to surface directly to the user.

3. ExtractionFailedError never escapes the ingestion adapter. It is recovered
   locally by substituting the default extraction result.

===============================================================================
"""


class PettyCashError(Exception):
    """
    Base exception for all petty cash kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PETTY_CASH_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# Not-found exceptions


class NotFoundError(PettyCashError):
    """Base for lookups of an id that does not exist."""

    code: str = "NOT_FOUND"
    entity_type: str = "entity"

    def __init__(self, entity_id: str):
        self.entity_id = str(entity_id)
        super().__init__(f"{self.entity_type.capitalize()} not found: {entity_id}")


class DepartmentNotFoundError(NotFoundError):
    code: str = "DEPARTMENT_NOT_FOUND"
    entity_type: str = "department"


class StaffNotFoundError(NotFoundError):
    code: str = "STAFF_NOT_FOUND"
    entity_type: str = "staff"


class ReceiptNotFoundError(NotFoundError):
    code: str = "RECEIPT_NOT_FOUND"
    entity_type: str = "receipt"


class BatchNotFoundError(NotFoundError):
    code: str = "BATCH_NOT_FOUND"
    entity_type: str = "batch"


# State machine


class InvalidStateTransitionError(PettyCashError):
    """The requested action is not allowed from the entity's current state."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str,
        action: str,
    ):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.current_state = current_state
        self.action = action
        super().__init__(
            f"Cannot {action} {entity_type} {entity_id} in state '{current_state}'"
        )


# Validation exceptions


class ValidationError(PettyCashError):
    """Base for input validation failures."""

    code: str = "VALIDATION_ERROR"


class InvalidCategoryError(ValidationError):
    """Category is not one of the enumerated expense categories."""

    code: str = "INVALID_CATEGORY"

    def __init__(self, category: str | None):
        self.category = category
        super().__init__(f"Invalid expense category: {category!r}")


class InvalidStatusError(ValidationError):
    """Status value is not a member of the status enumeration."""

    code: str = "INVALID_STATUS"

    def __init__(self, entity_type: str, status: str | None):
        self.entity_type = entity_type
        self.status = status
        super().__init__(f"Invalid {entity_type} status: {status!r}")


class InvalidActorError(ValidationError):
    """The acting persona may not perform this action."""

    code: str = "INVALID_ACTOR"

    def __init__(self, actor_role: str | None, action: str):
        self.actor_role = actor_role
        self.action = action
        super().__init__(f"Actor role {actor_role!r} cannot perform {action}")


class MissingRejectionReasonError(ValidationError):
    code: str = "MISSING_REJECTION_REASON"

    def __init__(self, receipt_id: str):
        self.receipt_id = str(receipt_id)
        super().__init__(f"A rejection reason is required for receipt {receipt_id}")


class InvalidAmountError(ValidationError):
    """A monetary amount or score is outside its allowed range."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value!r}: {reason}")


class BatchMembershipError(ValidationError):
    """A receipt cannot be added to, or is not a member of, a batch."""

    code: str = "BATCH_MEMBERSHIP"

    def __init__(self, receipt_id: str, reason: str, batch_id: str | None = None):
        self.receipt_id = str(receipt_id)
        self.batch_id = str(batch_id) if batch_id is not None else None
        self.reason = reason
        super().__init__(f"Receipt {receipt_id}: {reason}")


class EmptyBatchError(ValidationError):
    code: str = "EMPTY_BATCH"

    def __init__(self, department_id: str):
        self.department_id = str(department_id)
        super().__init__(
            f"Cannot create a batch with no receipts for department {department_id}"
        )


# External services


class ExternalServiceError(PettyCashError):
    """Base for failures of collaborators outside the kernel."""

    code: str = "EXTERNAL_SERVICE_ERROR"


class ExtractionFailedError(ExternalServiceError):
    """The AI extraction call failed or returned an unusable payload."""

    code: str = "EXTRACTION_FAILED"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Receipt extraction failed: {reason}")


# Storage


class StorageUnavailableError(PettyCashError):
    """The database could not be reached while performing a write."""

    code: str = "STORAGE_UNAVAILABLE"

    def __init__(self, operation: str, detail: str | None = None):
        self.operation = operation
        self.detail = detail
        msg = f"Storage unavailable during {operation}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


# Immutability


class ImmutabilityViolationError(PettyCashError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
