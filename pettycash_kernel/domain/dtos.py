"""
Frozen read models returned by services and selectors.

ORM instances never leave the kernel; callers receive these instead.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pettycash_kernel.domain.values import (
    ActivityAction,
    ActorRole,
    BatchStatus,
    EntityType,
    ExpenseCategory,
    ReceiptStatus,
)


@dataclass(frozen=True)
class DepartmentDTO:
    id: UUID
    name: str
    float_amount: Decimal
    created_at: datetime | None = None


@dataclass(frozen=True)
class StaffDTO:
    id: UUID
    name: str
    department_id: UUID
    created_at: datetime | None = None


@dataclass(frozen=True)
class FloatBalance:
    """A department's derived float position."""
    department_id: UUID
    total_float: Decimal
    used_float: Decimal
    remaining_float: Decimal

    @property
    def is_overdrawn(self) -> bool:
        return self.remaining_float < 0


@dataclass(frozen=True)
class ReceiptDTO:
    id: UUID
    image_url: str
    image_key: str
    staff_id: UUID
    staff_name: str
    department_id: UUID
    department_name: str
    merchant_name: str | None
    transaction_date: date | None
    amount_total: Decimal | None
    amount_gst: Decimal | None
    category: ExpenseCategory
    project_code: str | None
    ai_confidence: int | None
    ai_reasoning: str | None
    ai_flags: tuple[str, ...]
    status: ReceiptStatus
    batch_id: UUID | None
    rejected_by: str | None
    rejection_reason: str | None
    rejected_at: datetime | None
    admin_approved_at: datetime | None
    hod_approved_at: datetime | None
    paid_at: datetime | None
    created_at: datetime | None


@dataclass(frozen=True)
class BatchDTO:
    id: UUID
    batch_number: int
    department_id: UUID
    total_amount: Decimal
    total_gst: Decimal
    status: BatchStatus
    hod_approved_at: datetime | None
    finance_approved_at: datetime | None
    paid_at: datetime | None
    created_at: datetime | None
    department_name: str | None = None
    # Current members only; rejected receipts are detached from the batch.
    receipts: tuple[ReceiptDTO, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ActivityLogDTO:
    id: UUID
    seq: int
    entity_type: EntityType
    entity_id: UUID
    actor_role: ActorRole
    actor_name: str | None
    action: ActivityAction
    description: str
    metadata: dict[str, Any] | None
    department_id: UUID | None
    created_at: datetime | None
