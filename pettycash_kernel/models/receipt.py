"""
Receipt ORM model.

Responsibility
--------------
Persist one expense claim: the image reference, denormalised claimant and
department names, AI-extracted fields (user-corrected), annotation data, and
the lifecycle status with its stage timestamps.

Invariants enforced
-------------------
* ``status`` and ``category`` are validated against their enums on
  assignment; an unknown value raises before the row is flushed.
* Money columns are Decimal (Numeric(12,2)).
* ``batch_id`` is cleared whenever the receipt is rejected (enforced by
  ReceiptService; checked by tests).
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from pettycash_kernel.db.base import TimestampedBase
from pettycash_kernel.domain.values import ExpenseCategory, ReceiptStatus


class Receipt(TimestampedBase):
    """A single petty-cash claim."""

    __tablename__ = "receipts"

    __table_args__ = (
        Index("idx_receipt_department_status", "department_id", "status"),
        Index("idx_receipt_staff", "staff_id"),
        Index("idx_receipt_batch", "batch_id"),
        Index("idx_receipt_created", "created_at"),
    )

    image_url: Mapped[str] = mapped_column(Text, nullable=False)
    image_key: Mapped[str] = mapped_column(String(500), nullable=False)

    staff_id: Mapped[UUID] = mapped_column(ForeignKey("staff.id"), nullable=False)
    staff_name: Mapped[str] = mapped_column(String(200), nullable=False)
    department_id: Mapped[UUID] = mapped_column(
        ForeignKey("departments.id"), nullable=False
    )
    department_name: Mapped[str] = mapped_column(String(100), nullable=False)

    merchant_name: Mapped[str | None] = mapped_column(String(300), nullable=True)
    transaction_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    amount_total: Mapped[Decimal | None] = mapped_column(nullable=True)
    amount_gst: Mapped[Decimal | None] = mapped_column(nullable=True)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    project_code: Mapped[str | None] = mapped_column(String(100), nullable=True)

    ai_confidence: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ai_reasoning: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_flags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=ReceiptStatus.SUBMITTED.value
    )
    batch_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("batches.id"), nullable=True
    )

    rejected_by: Mapped[str | None] = mapped_column(String(200), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    admin_approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    hod_approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    paid_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    batch: Mapped["Batch"] = relationship(  # noqa: F821
        "Batch", back_populates="receipts"
    )

    @validates("status")
    def _validate_status(self, key, value):
        return ReceiptStatus.parse(value).value

    @validates("category")
    def _validate_category(self, key, value):
        return ExpenseCategory.parse(value).value

    def to_dto(self):
        from pettycash_kernel.domain.dtos import ReceiptDTO

        return ReceiptDTO(
            id=self.id,
            image_url=self.image_url,
            image_key=self.image_key,
            staff_id=self.staff_id,
            staff_name=self.staff_name,
            department_id=self.department_id,
            department_name=self.department_name,
            merchant_name=self.merchant_name,
            transaction_date=self.transaction_date,
            amount_total=self.amount_total,
            amount_gst=self.amount_gst,
            category=ExpenseCategory(self.category),
            project_code=self.project_code,
            ai_confidence=self.ai_confidence,
            ai_reasoning=self.ai_reasoning,
            ai_flags=tuple(self.ai_flags or ()),
            status=ReceiptStatus(self.status),
            batch_id=self.batch_id,
            rejected_by=self.rejected_by,
            rejection_reason=self.rejection_reason,
            rejected_at=self.rejected_at,
            admin_approved_at=self.admin_approved_at,
            hod_approved_at=self.hod_approved_at,
            paid_at=self.paid_at,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return f"<Receipt {self.id} {self.merchant_name} [{self.status}] {self.amount_total}>"
