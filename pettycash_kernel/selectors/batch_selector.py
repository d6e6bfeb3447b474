"""
Module: pettycash_kernel.selectors.batch_selector
Responsibility: Read access to top-up requests and their current members.

Members of a batch are ordered by category, then creation time, which is the
order the HOD and finance review screens present them in.  Rejected receipts
have already been detached, so they never appear as members.
"""

from uuid import UUID

from sqlalchemy import select

from pettycash_kernel.domain.dtos import BatchDTO
from pettycash_kernel.domain.values import BatchStatus
from pettycash_kernel.exceptions import BatchNotFoundError
from pettycash_kernel.models.batch import Batch
from pettycash_kernel.models.department import Department
from pettycash_kernel.models.receipt import Receipt
from pettycash_kernel.selectors.base import BaseSelector


class BatchSelector(BaseSelector):

    def _members(self, batch_id: UUID) -> list[Receipt]:
        return list(
            self.session.execute(
                select(Receipt)
                .where(Receipt.batch_id == batch_id)
                .order_by(Receipt.category, Receipt.created_at)
            ).scalars()
        )

    def get(self, batch_id: UUID) -> BatchDTO:
        """The batch with its members."""
        row = self.session.execute(
            select(Batch, Department.name)
            .join(Department, Department.id == Batch.department_id)
            .where(Batch.id == batch_id)
        ).one_or_none()
        if row is None:
            raise BatchNotFoundError(batch_id)
        batch, department_name = row
        return batch.to_dto(
            receipts=self._members(batch.id), department_name=department_name
        )

    def _list(self, query_name: str, *criteria) -> list[BatchDTO]:
        def run():
            rows = self.session.execute(
                select(Batch, Department.name)
                .join(Department, Department.id == Batch.department_id)
                .where(*criteria)
                .order_by(Batch.batch_number.desc())
            ).all()
            return [
                batch.to_dto(receipts=self._members(batch.id), department_name=name)
                for batch, name in rows
            ]

        return self._degrading_list(query_name, run)

    def list_by_department(self, department_id: UUID) -> list[BatchDTO]:
        return self._list("list_batches_by_department", Batch.department_id == department_id)

    def list_pending_hod(self, department_id: UUID) -> list[BatchDTO]:
        return self._list(
            "list_pending_hod",
            Batch.department_id == department_id,
            Batch.status == BatchStatus.PENDING_HOD.value,
        )

    def list_pending_finance(self) -> list[BatchDTO]:
        """Batches awaiting finance, across every department."""
        return self._list(
            "list_pending_finance",
            Batch.status == BatchStatus.PENDING_FINANCE.value,
        )
