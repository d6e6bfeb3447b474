"""
Derived float balance.

remaining == float_amount - sum(amount_total) over admin_approved and
hod_approved receipts.  Submitted, rejected and paid receipts do not count.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from pettycash_kernel.domain.values import ActorRole
from pettycash_kernel.exceptions import DepartmentNotFoundError


class TestFloatSelector:

    def test_fresh_department(self, float_selector, department):
        balance = float_selector.get_float(department.id)
        assert balance.total_float == Decimal("3500.00")
        assert balance.used_float == Decimal("0.00")
        assert balance.remaining_float == Decimal("3500.00")
        assert not balance.is_overdrawn

    def test_only_committed_statuses_count(self, make_receipt, make_approved_receipt,
                                           receipt_service, batch_service, float_selector,
                                           department):
        make_receipt(amount="11.00")  # submitted
        rejected = make_approved_receipt(amount="22.00")
        receipt_service.reject(rejected.id, "Duplicate", ActorRole.ADMIN)
        make_approved_receipt(amount="33.00")  # admin_approved
        hod = make_approved_receipt(amount="44.00")
        batch = batch_service.create_batch(department.id, [hod.id])
        batch_service.hod_approve(batch.id)  # hod_approved

        paid = make_approved_receipt(amount="55.00")
        paid_batch = batch_service.create_batch(department.id, [paid.id])
        batch_service.hod_approve(paid_batch.id)
        batch_service.finance_approve(paid_batch.id)

        balance = float_selector.get_float(department.id)
        assert balance.used_float == Decimal("77.00")
        assert balance.remaining_float == Decimal("3423.00")

    def test_null_amount_counts_as_zero(self, make_approved_receipt, float_selector,
                                        department):
        make_approved_receipt(amount=None, gst=None)
        assert float_selector.get_float(department.id).used_float == Decimal("0.00")

    def test_departments_are_independent(self, make_approved_receipt, department_service,
                                         float_selector):
        make_approved_receipt(amount="100.00")
        other = department_service.get_or_create_department("Operations")
        assert float_selector.get_float(other.id).used_float == Decimal("0.00")

    def test_overdrawn_is_reported_not_blocked(self, department_service, float_selector,
                                               receipt_service, captured_logs):
        small = department_service.get_or_create_department("Transport", Decimal("50.00"))
        driver = department_service.get_or_create_staff("Ahmad", small.id)
        receipt = receipt_service.create_receipt(
            staff_id=driver.id,
            department_id=small.id,
            image_url="/files/r.jpg",
            image_key="r.jpg",
            category="Transport and Vehicle",
            amount_total=Decimal("80.00"),
        )
        receipt_service.admin_approve(receipt.id)

        balance = float_selector.get_float(small.id)
        assert balance.remaining_float == Decimal("-30.00")
        assert balance.is_overdrawn
        assert any(r["message"] == "float_overdrawn" for r in captured_logs())

    def test_unknown_department(self, float_selector):
        with pytest.raises(DepartmentNotFoundError):
            float_selector.get_float(uuid4())
