"""Batch reads for the HOD and finance queues."""

from uuid import uuid4

import pytest

from pettycash_kernel.domain.values import BatchStatus
from pettycash_kernel.exceptions import BatchNotFoundError


class TestBatchSelector:

    def test_get_includes_members_and_department(self, make_approved_receipt, batch_service,
                                                 batch_selector, department):
        meal = make_approved_receipt(category="Business Meals")
        fuel = make_approved_receipt(category="Transport and Vehicle")
        batch = batch_service.create_batch(department.id, [fuel.id, meal.id])

        fetched = batch_selector.get(batch.id)
        assert fetched.department_name == "Logistics"
        # Members are ordered by category.
        assert [r.id for r in fetched.receipts] == [meal.id, fuel.id]

    def test_get_unknown(self, batch_selector):
        with pytest.raises(BatchNotFoundError):
            batch_selector.get(uuid4())

    def test_newest_batch_first(self, make_approved_receipt, batch_service, batch_selector,
                                department):
        first = batch_service.create_batch(department.id, [make_approved_receipt().id])
        second = batch_service.create_batch(department.id, [make_approved_receipt().id])
        listed = batch_selector.list_by_department(department.id)
        assert [b.id for b in listed] == [second.id, first.id]

    def test_queues(self, make_approved_receipt, batch_service, batch_selector, department,
                    department_service):
        waiting_hod = batch_service.create_batch(department.id, [make_approved_receipt().id])
        waiting_finance = batch_service.create_batch(
            department.id, [make_approved_receipt().id]
        )
        batch_service.hod_approve(waiting_finance.id)

        assert [b.id for b in batch_selector.list_pending_hod(department.id)] == [waiting_hod.id]
        other = department_service.get_or_create_department("Operations")
        assert batch_selector.list_pending_hod(other.id) == []

        pending_finance = batch_selector.list_pending_finance()
        assert [b.id for b in pending_finance] == [waiting_finance.id]
        assert pending_finance[0].status == BatchStatus.PENDING_FINANCE
        assert pending_finance[0].department_name == "Logistics"
