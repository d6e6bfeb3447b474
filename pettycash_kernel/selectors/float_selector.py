"""
Module: pettycash_kernel.selectors.float_selector
Responsibility: Derive a department's float position from its receipts.
    There is no stored balance anywhere: used float is recomputed on every
    read as the sum of committed receipt amounts.

Invariants enforced:
    - remaining == float_amount - sum(amount_total) over admin_approved and
      hod_approved receipts of the department.
    - Null amounts count as zero.
    - remaining may be negative; callers decide how to warn.

Failure modes:
    - DepartmentNotFoundError for an unknown department.
    - Database errors propagate; a float is never guessed.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from pettycash_kernel.db.types import sum_money, to_money
from pettycash_kernel.domain.dtos import FloatBalance
from pettycash_kernel.domain.values import FLOAT_COMMITTED_STATUSES
from pettycash_kernel.exceptions import DepartmentNotFoundError
from pettycash_kernel.logging_config import get_logger
from pettycash_kernel.models.department import Department
from pettycash_kernel.models.receipt import Receipt
from pettycash_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.float")


class FloatSelector(BaseSelector):
    """Computes department float balances."""

    def used_float(self, department_id: UUID) -> Decimal:
        amounts = self.session.execute(
            select(Receipt.amount_total).where(
                Receipt.department_id == department_id,
                Receipt.status.in_([s.value for s in FLOAT_COMMITTED_STATUSES]),
            )
        ).scalars()
        return sum_money(amounts)

    def get_float(self, department_id: UUID) -> FloatBalance:
        department = self.session.get(Department, department_id)
        if department is None:
            raise DepartmentNotFoundError(department_id)

        total_float = to_money(department.float_amount)
        used = self.used_float(department_id)
        balance = FloatBalance(
            department_id=department.id,
            total_float=total_float,
            used_float=used,
            remaining_float=total_float - used,
        )
        if balance.is_overdrawn:
            logger.warning(
                "float_overdrawn",
                extra={
                    "department_id": str(department.id),
                    "remaining_float": str(balance.remaining_float),
                },
            )
        return balance
