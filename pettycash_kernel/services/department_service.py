"""
DepartmentService -- reference data for departments and staff.

Responsibility:
    Get-or-create for departments (setup and seed time) and staff (lazily,
    on first submission).  Both are lookup entities and never change after
    creation.

Architecture position:
    Kernel > Services.  Reads of department/staff lists live in
    DepartmentSelector.

Invariants enforced:
    - Department names are unique; staff are unique per (name, department).
    - Concurrent get-or-create of the same name yields one row: the insert
      runs in a SAVEPOINT and a lost race re-reads the winner.
    - float_amount is non-negative and is only set at creation.

Failure modes:
    - DepartmentNotFoundError when creating staff for an unknown department.
    - ValidationError on blank names or a negative float.
    - StorageUnavailableError if the database is unreachable.
"""

from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pettycash_kernel.db.types import to_money
from pettycash_kernel.domain.clock import Clock, SystemClock
from pettycash_kernel.domain.dtos import DepartmentDTO, StaffDTO
from pettycash_kernel.exceptions import (
    DepartmentNotFoundError,
    InvalidAmountError,
    ValidationError,
)
from pettycash_kernel.logging_config import get_logger
from pettycash_kernel.models.department import DEFAULT_FLOAT_AMOUNT, Department, Staff
from pettycash_kernel.services._transaction import write_scope

logger = get_logger("services.department")


def _clean_name(name: str | None, what: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError(f"{what} name is required")
    return cleaned


class DepartmentService:
    """
    Department and staff reference data.

    Transaction boundary: commits on success unless ``auto_commit=False``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        default_float_amount: Decimal = DEFAULT_FLOAT_AMOUNT,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._default_float_amount = default_float_amount
        self._auto_commit = auto_commit

    # ------------------------------------------------------------------
    # Departments
    # ------------------------------------------------------------------

    def _find_department(self, name: str) -> Department | None:
        return self._session.execute(
            select(Department).where(Department.name == name)
        ).scalar_one_or_none()

    def get_or_create_department(
        self,
        name: str,
        float_amount: Decimal | None = None,
    ) -> DepartmentDTO:
        """Return the department called ``name``, creating it if missing.

        ``float_amount`` only applies on creation; an existing department
        keeps its configured float.
        """
        name = _clean_name(name, "Department")
        amount = to_money(float_amount) if float_amount is not None else self._default_float_amount
        if amount < 0:
            raise InvalidAmountError("float_amount", amount, "must not be negative")

        with write_scope(self._session, "get_or_create_department", self._auto_commit):
            department = self._find_department(name)
            if department is None:
                department = self._insert_or_reread(
                    Department(
                        name=name,
                        float_amount=amount,
                        created_at=self._clock.now(),
                        updated_at=self._clock.now(),
                    ),
                    lambda: self._find_department(name),
                )
                logger.info(
                    "department_created",
                    extra={"department_id": str(department.id), "department_name": name,
                           "float_amount": str(department.float_amount)},
                )
            return department.to_dto()

    def seed_departments(
        self,
        names: Iterable[str],
        float_amount: Decimal | None = None,
    ) -> list[DepartmentDTO]:
        """Ensure each named department exists.  Safe to run repeatedly."""
        created = [self.get_or_create_department(n, float_amount) for n in names]
        logger.info("departments_seeded", extra={"count": len(created)})
        return created

    # ------------------------------------------------------------------
    # Staff
    # ------------------------------------------------------------------

    def _find_staff(self, name: str, department_id: UUID) -> Staff | None:
        return self._session.execute(
            select(Staff).where(
                Staff.name == name,
                Staff.department_id == department_id,
            )
        ).scalar_one_or_none()

    def get_or_create_staff(self, name: str, department_id: UUID) -> StaffDTO:
        """Return the staff member (name, department), creating it if missing."""
        name = _clean_name(name, "Staff")

        with write_scope(self._session, "get_or_create_staff", self._auto_commit):
            if self._session.get(Department, department_id) is None:
                raise DepartmentNotFoundError(department_id)
            staff = self._find_staff(name, department_id)
            if staff is None:
                staff = self._insert_or_reread(
                    Staff(
                        name=name,
                        department_id=department_id,
                        created_at=self._clock.now(),
                        updated_at=self._clock.now(),
                    ),
                    lambda: self._find_staff(name, department_id),
                )
                logger.info(
                    "staff_created",
                    extra={"staff_id": str(staff.id), "department_id": str(department_id)},
                )
            return staff.to_dto()

    # ------------------------------------------------------------------

    def _insert_or_reread(self, row, reread):
        savepoint = self._session.begin_nested()
        try:
            self._session.add(row)
            self._session.flush()
            savepoint.commit()
            return row
        except IntegrityError:
            savepoint.rollback()
            logger.debug("get_or_create_race_retry", extra={"table": row.__tablename__})
            existing = reread()
            if existing is None:
                raise
            return existing
