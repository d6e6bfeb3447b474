"""Read access to receipts.  Lists are newest first."""

from uuid import UUID

from sqlalchemy import select

from pettycash_kernel.domain.dtos import ReceiptDTO
from pettycash_kernel.domain.values import ReceiptStatus
from pettycash_kernel.exceptions import ReceiptNotFoundError
from pettycash_kernel.models.receipt import Receipt
from pettycash_kernel.selectors.base import BaseSelector


class ReceiptSelector(BaseSelector):

    def get(self, receipt_id: UUID) -> ReceiptDTO:
        receipt = self.session.get(Receipt, receipt_id)
        if receipt is None:
            raise ReceiptNotFoundError(receipt_id)
        return receipt.to_dto()

    def _list(self, query_name: str, *criteria) -> list[ReceiptDTO]:
        def run():
            rows = self.session.execute(
                select(Receipt)
                .where(*criteria)
                .order_by(Receipt.created_at.desc(), Receipt.id)
            ).scalars()
            return [r.to_dto() for r in rows]

        return self._degrading_list(query_name, run)

    def list_by_department(
        self,
        department_id: UUID,
        status: ReceiptStatus | str | None = None,
    ) -> list[ReceiptDTO]:
        criteria = [Receipt.department_id == department_id]
        if status is not None:
            criteria.append(Receipt.status == ReceiptStatus.parse(status).value)
        return self._list("list_receipts_by_department", *criteria)

    def list_by_staff(self, staff_id: UUID) -> list[ReceiptDTO]:
        return self._list("list_receipts_by_staff", Receipt.staff_id == staff_id)

    def list_submitted(self, department_id: UUID) -> list[ReceiptDTO]:
        """The admin review queue."""
        return self.list_by_department(department_id, ReceiptStatus.SUBMITTED)

    def list_ready_for_batching(self, department_id: UUID) -> list[ReceiptDTO]:
        """Admin-approved receipts not yet in a top-up request."""
        return self._list(
            "list_ready_for_batching",
            Receipt.department_id == department_id,
            Receipt.status == ReceiptStatus.ADMIN_APPROVED.value,
            Receipt.batch_id.is_(None),
        )
