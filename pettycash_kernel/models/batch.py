"""
Batch (top-up request) ORM model.

Invariants enforced
-------------------
* ``batch_number`` is unique and allocated from the ``batch`` sequence.
* ``total_amount`` / ``total_gst`` equal the sums over current members;
  they are only ever written by ``recalculate_batch_totals``.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from pettycash_kernel.db.base import TimestampedBase
from pettycash_kernel.domain.values import BatchStatus


class Batch(TimestampedBase):
    """A group of admin-approved receipts submitted for HOD and finance approval."""

    __tablename__ = "batches"

    __table_args__ = (
        UniqueConstraint("batch_number", name="uq_batch_number"),
        Index("idx_batch_department_status", "department_id", "status"),
    )

    batch_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    department_id: Mapped[UUID] = mapped_column(
        ForeignKey("departments.id"), nullable=False
    )
    total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0.00"))
    total_gst: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0.00"))
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=BatchStatus.PENDING_HOD.value
    )
    hod_approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    finance_approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    paid_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    receipts: Mapped[list["Receipt"]] = relationship(  # noqa: F821
        "Receipt",
        back_populates="batch",
        order_by="Receipt.created_at",
    )

    @validates("status")
    def _validate_status(self, key, value):
        return BatchStatus.parse(value).value

    def to_dto(self, receipts=None, department_name: str | None = None):
        from pettycash_kernel.domain.dtos import BatchDTO

        return BatchDTO(
            id=self.id,
            batch_number=self.batch_number,
            department_id=self.department_id,
            total_amount=self.total_amount,
            total_gst=self.total_gst,
            status=BatchStatus(self.status),
            hod_approved_at=self.hod_approved_at,
            finance_approved_at=self.finance_approved_at,
            paid_at=self.paid_at,
            created_at=self.created_at,
            department_name=department_name,
            receipts=tuple(r.to_dto() for r in receipts or ()),
        )

    def __repr__(self) -> str:
        return f"<Batch #{self.batch_number} [{self.status}] {self.total_amount}>"
