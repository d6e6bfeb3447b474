"""
Closed enumerations for the petty cash domain.

Every status, category, persona and audit verb the system writes is a member
of one of these enums.  ORM models validate on assignment, so an unknown value
never reaches the database.
"""

from enum import Enum

from pettycash_kernel.exceptions import (
    InvalidActorError,
    InvalidCategoryError,
    InvalidStatusError,
    ValidationError,
)


class ExpenseCategory(str, Enum):
    """The eight expense categories a receipt can be coded to."""
    PORT_AND_TERMINAL = "Port and Terminal Operations"
    TRANSPORT_AND_VEHICLE = "Transport and Vehicle"
    BUSINESS_MEALS = "Business Meals"
    HARDWARE_AND_SUPPLIES = "Hardware and Operational Supplies"
    CONTRACTOR_AND_PASS_FEES = "Contractor and Pass Fees"
    FEES = "Fees"
    TRAVEL_AND_PETTY_CASH = "Business Travel and Petty Cash"
    OTHER = "Other"

    @classmethod
    def parse(cls, value: "str | ExpenseCategory | None") -> "ExpenseCategory":
        try:
            return cls(value)
        except ValueError:
            raise InvalidCategoryError(value) from None


class ReceiptStatus(str, Enum):
    """Receipt lifecycle states."""
    SUBMITTED = "submitted"
    ADMIN_APPROVED = "admin_approved"
    HOD_APPROVED = "hod_approved"
    PAID = "paid"
    REJECTED = "rejected"

    @classmethod
    def parse(cls, value: "str | ReceiptStatus | None") -> "ReceiptStatus":
        try:
            return cls(value)
        except ValueError:
            raise InvalidStatusError("receipt", value) from None


class BatchStatus(str, Enum):
    """Top-up request lifecycle states.

    APPROVED and REJECTED are reserved: no current operation moves a batch
    into them.
    """
    PENDING_HOD = "pending_hod"
    PENDING_FINANCE = "pending_finance"
    APPROVED = "approved"
    PAID = "paid"
    REJECTED = "rejected"

    @classmethod
    def parse(cls, value: "str | BatchStatus | None") -> "BatchStatus":
        try:
            return cls(value)
        except ValueError:
            raise InvalidStatusError("batch", value) from None


class ActorRole(str, Enum):
    """The four personas. No authentication: any caller may act as any."""
    STAFF = "staff"
    ADMIN = "admin"
    HOD = "hod"
    FINANCE = "finance"

    @classmethod
    def parse(cls, value: "str | ActorRole | None", action: str = "act") -> "ActorRole":
        try:
            return cls(value)
        except ValueError:
            raise InvalidActorError(value, action) from None


class EntityType(str, Enum):
    RECEIPT = "receipt"
    BATCH = "batch"
    DEPARTMENT = "department"

    @classmethod
    def parse(cls, value: "str | EntityType | None") -> "EntityType":
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(f"Invalid entity type: {value!r}") from None


class ActivityAction(str, Enum):
    """Audit verbs, one per logical transition."""
    SUBMITTED = "submitted"
    ADMIN_APPROVED = "admin_approved"
    ADMIN_REJECTED = "admin_rejected"
    BATCH_CREATED = "batch_created"
    HOD_APPROVED = "hod_approved"
    HOD_PARTIAL_APPROVED = "hod_partial_approved"
    HOD_REJECTED = "hod_rejected"
    FINANCE_APPROVED = "finance_approved"
    FINANCE_REJECTED = "finance_rejected"
    PAID = "paid"

    @classmethod
    def parse(cls, value: "str | ActivityAction | None") -> "ActivityAction":
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(f"Invalid activity action: {value!r}") from None


# Rejection audit verb per persona. Staff cannot reject.
REJECTION_ACTION_BY_ROLE: dict[ActorRole, ActivityAction] = {
    ActorRole.ADMIN: ActivityAction.ADMIN_REJECTED,
    ActorRole.HOD: ActivityAction.HOD_REJECTED,
    ActorRole.FINANCE: ActivityAction.FINANCE_REJECTED,
}

# Receipt states whose amounts are committed against the float.
FLOAT_COMMITTED_STATUSES: tuple[ReceiptStatus, ...] = (
    ReceiptStatus.ADMIN_APPROVED,
    ReceiptStatus.HOD_APPROVED,
)

# Receipt states that count as "approved" for analytics rates.
APPROVED_STATUSES: tuple[ReceiptStatus, ...] = (
    ReceiptStatus.ADMIN_APPROVED,
    ReceiptStatus.HOD_APPROVED,
    ReceiptStatus.PAID,
)

DEFAULT_HOD_REJECTION_REASON = "Rejected during batch approval"
UNKNOWN_MERCHANT = "Unknown Merchant"

# Default actor label when the caller does not supply a name.
ROLE_LABELS: dict[ActorRole, str] = {
    ActorRole.STAFF: "Staff",
    ActorRole.ADMIN: "Admin",
    ActorRole.HOD: "HOD",
    ActorRole.FINANCE: "Finance",
}
