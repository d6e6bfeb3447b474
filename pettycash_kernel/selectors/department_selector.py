"""Read access to departments and their staff."""

from uuid import UUID

from sqlalchemy import select

from pettycash_kernel.domain.dtos import DepartmentDTO, StaffDTO
from pettycash_kernel.exceptions import DepartmentNotFoundError
from pettycash_kernel.models.department import Department, Staff
from pettycash_kernel.selectors.base import BaseSelector


class DepartmentSelector(BaseSelector):

    def list_departments(self) -> list[DepartmentDTO]:
        def run():
            rows = self.session.execute(
                select(Department).order_by(Department.name)
            ).scalars()
            return [d.to_dto() for d in rows]

        return self._degrading_list("list_departments", run)

    def get(self, department_id: UUID) -> DepartmentDTO:
        department = self.session.get(Department, department_id)
        if department is None:
            raise DepartmentNotFoundError(department_id)
        return department.to_dto()

    def list_staff(self, department_id: UUID) -> list[StaffDTO]:
        """Staff of one department, ordered by name."""
        def run():
            rows = self.session.execute(
                select(Staff)
                .where(Staff.department_id == department_id)
                .order_by(Staff.name)
            ).scalars()
            return [s.to_dto() for s in rows]

        return self._degrading_list("list_staff", run)
