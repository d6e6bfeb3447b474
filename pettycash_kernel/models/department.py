"""
Department and Staff ORM models.

Invariants enforced
-------------------
* Department names are unique.
* ``float_amount`` is configuration; no workflow operation writes it.
* A staff member is identified by (name, department_id) and never changes
  after creation.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pettycash_kernel.db.base import TimestampedBase

DEFAULT_FLOAT_AMOUNT = Decimal("3500.00")


class Department(TimestampedBase):
    """A cost centre holding a fixed petty-cash float."""

    __tablename__ = "departments"

    __table_args__ = (
        UniqueConstraint("name", name="uq_department_name"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    float_amount: Mapped[Decimal] = mapped_column(
        nullable=False, default=DEFAULT_FLOAT_AMOUNT
    )

    staff: Mapped[list["Staff"]] = relationship(
        "Staff",
        back_populates="department",
    )

    def to_dto(self):
        from pettycash_kernel.domain.dtos import DepartmentDTO

        return DepartmentDTO(
            id=self.id,
            name=self.name,
            float_amount=self.float_amount,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return f"<Department {self.name} float={self.float_amount}>"


class Staff(TimestampedBase):
    """A claimant.  Created lazily on first submission."""

    __tablename__ = "staff"

    __table_args__ = (
        UniqueConstraint("name", "department_id", name="uq_staff_name_department"),
        Index("idx_staff_department", "department_id"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    department_id: Mapped[UUID] = mapped_column(
        ForeignKey("departments.id"), nullable=False
    )

    department: Mapped[Department] = relationship("Department", back_populates="staff")

    def to_dto(self):
        from pettycash_kernel.domain.dtos import StaffDTO

        return StaffDTO(
            id=self.id,
            name=self.name,
            department_id=self.department_id,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return f"<Staff {self.name}>"
