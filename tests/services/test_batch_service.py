"""
Top-up request aggregation and the HOD / finance approval chain.

Verifies:
- The single-receipt happy path restores the float on disbursement
- HOD line-item rejection recomputes totals and detaches the receipt
- Batch creation is all-or-nothing
- Concurrent-style double approvals fail without changing anything
- Total recomputation is idempotent
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from pettycash_kernel.domain.values import (
    ActivityAction,
    ActorRole,
    BatchStatus,
    EntityType,
    ReceiptStatus,
)
from pettycash_kernel.exceptions import (
    BatchMembershipError,
    BatchNotFoundError,
    DepartmentNotFoundError,
    EmptyBatchError,
    InvalidActorError,
    InvalidStateTransitionError,
    ReceiptNotFoundError,
)


class TestHappyPath:

    def test_single_receipt_lifecycle(
        self, make_receipt, receipt_service, batch_service, receipt_selector,
        float_selector, department,
    ):
        receipt = make_receipt(amount="45.00", gst="3.93", category="Transport and Vehicle")
        assert receipt.status == ReceiptStatus.SUBMITTED

        receipt_service.admin_approve(receipt.id, actor_name="Aisha")
        assert float_selector.get_float(department.id).used_float == Decimal("45.00")

        batch = batch_service.create_batch(department.id, [receipt.id], actor_name="Aisha")
        assert batch.status == BatchStatus.PENDING_HOD
        assert batch.total_amount == Decimal("45.00")
        assert batch.total_gst == Decimal("3.93")
        assert receipt_selector.get(receipt.id).batch_id == batch.id

        batch = batch_service.hod_approve(batch.id, actor_name="Mr Lim")
        assert batch.status == BatchStatus.PENDING_FINANCE
        assert batch.hod_approved_at is not None
        assert receipt_selector.get(receipt.id).status == ReceiptStatus.HOD_APPROVED
        # HOD approval keeps the amount committed.
        assert float_selector.get_float(department.id).used_float == Decimal("45.00")

        batch = batch_service.finance_approve(batch.id, actor_name="Ms Ng")
        assert batch.status == BatchStatus.PAID
        assert batch.paid_at is not None
        assert batch.finance_approved_at is not None
        assert receipt_selector.get(receipt.id).status == ReceiptStatus.PAID

        balance = float_selector.get_float(department.id)
        assert balance.used_float == Decimal("0.00")
        assert balance.remaining_float == Decimal("3500.00")

    def test_batch_numbers_increase(self, make_approved_receipt, batch_service, department):
        first = batch_service.create_batch(department.id, [make_approved_receipt().id])
        second = batch_service.create_batch(department.id, [make_approved_receipt().id])
        assert second.batch_number == first.batch_number + 1

    def test_audit_trail(self, make_approved_receipt, batch_service, activity_selector,
                         department):
        receipt = make_approved_receipt(amount="45.00")
        batch = batch_service.create_batch(department.id, [receipt.id])
        batch_service.hod_approve(batch.id)
        batch_service.finance_approve(batch.id)

        entries = activity_selector.list_by_entity(EntityType.BATCH, batch.id)
        assert [e.action for e in entries] == [
            ActivityAction.PAID,
            ActivityAction.HOD_APPROVED,
            ActivityAction.BATCH_CREATED,
        ]
        n = batch.batch_number
        assert entries[2].description == f"Top-up request #{n} created with 1 receipts"
        assert entries[1].description == f"Top-up request #{n} fully approved with 1 receipts"
        assert entries[0].description == f"Top-up request #{n} approved and disbursed - $45.00"
        assert entries[2].metadata["receiptIds"] == [str(receipt.id)]

        # Members advancing with the batch get no entries of their own.
        receipt_entries = activity_selector.list_by_entity(EntityType.RECEIPT, receipt.id)
        assert [e.action for e in receipt_entries] == [
            ActivityAction.ADMIN_APPROVED,
            ActivityAction.SUBMITTED,
        ]


class TestHodPartialApproval:

    @pytest.fixture
    def three_receipt_batch(self, make_approved_receipt, batch_service, department):
        fifty = make_approved_receipt(amount="50.00", gst="4.13")
        thirty = make_approved_receipt(amount="30.00", gst="2.48")
        twenty = make_approved_receipt(amount="20.00", gst="1.65")
        batch = batch_service.create_batch(department.id, [fifty.id, thirty.id, twenty.id])
        return batch, fifty, thirty, twenty

    def test_line_item_rejection(self, three_receipt_batch, batch_service, receipt_selector):
        batch, fifty, thirty, twenty = three_receipt_batch
        assert batch.total_amount == Decimal("100.00")

        approved = batch_service.hod_approve(
            batch.id,
            rejected_receipt_ids=[thirty.id],
            rejection_reasons={thirty.id: "Not project related"},
            actor_name="Mr Lim",
        )

        assert approved.status == BatchStatus.PENDING_FINANCE
        assert approved.total_amount == Decimal("70.00")
        assert approved.total_gst == Decimal("5.78")
        assert {r.id for r in approved.receipts} == {fifty.id, twenty.id}

        rejected = receipt_selector.get(thirty.id)
        assert rejected.status == ReceiptStatus.REJECTED
        assert rejected.batch_id is None
        assert rejected.rejection_reason == "Not project related"
        assert rejected.rejected_by == "Mr Lim"
        for rid in (fifty.id, twenty.id):
            assert receipt_selector.get(rid).status == ReceiptStatus.HOD_APPROVED

    def test_default_reason_and_string_keys(self, three_receipt_batch, batch_service,
                                            receipt_selector):
        batch, fifty, thirty, twenty = three_receipt_batch
        batch_service.hod_approve(
            batch.id,
            rejected_receipt_ids=[thirty.id, twenty.id],
            rejection_reasons={str(twenty.id): "Duplicate"},
        )
        assert receipt_selector.get(thirty.id).rejection_reason == "Rejected during batch approval"
        assert receipt_selector.get(twenty.id).rejection_reason == "Duplicate"

    def test_partial_approval_audit(self, three_receipt_batch, batch_service,
                                    activity_selector):
        batch, fifty, thirty, twenty = three_receipt_batch
        batch_service.hod_approve(batch.id, rejected_receipt_ids=[thirty.id])

        latest = activity_selector.list_by_entity(EntityType.BATCH, batch.id)[0]
        assert latest.action == ActivityAction.HOD_PARTIAL_APPROVED
        assert latest.description == (
            f"Top-up request #{batch.batch_number} partially approved: "
            "2 approved, 1 rejected"
        )
        assert latest.metadata["rejectedReceiptIds"] == [str(thirty.id)]

        receipt_latest = activity_selector.list_by_entity(EntityType.RECEIPT, thirty.id)[0]
        assert receipt_latest.action == ActivityAction.HOD_REJECTED

    def test_rejecting_every_member_still_advances(self, three_receipt_batch, batch_service):
        batch, fifty, thirty, twenty = three_receipt_batch
        approved = batch_service.hod_approve(
            batch.id, rejected_receipt_ids=[fifty.id, thirty.id, twenty.id]
        )
        assert approved.status == BatchStatus.PENDING_FINANCE
        assert approved.total_amount == Decimal("0.00")
        assert approved.receipts == ()

    def test_non_member_rejection_changes_nothing(self, three_receipt_batch, batch_service,
                                                  batch_selector, make_approved_receipt):
        batch, *_ = three_receipt_batch
        outsider = make_approved_receipt()
        with pytest.raises(BatchMembershipError):
            batch_service.hod_approve(batch.id, rejected_receipt_ids=[outsider.id])
        refreshed = batch_selector.get(batch.id)
        assert refreshed.status == BatchStatus.PENDING_HOD
        assert len(refreshed.receipts) == 3


class TestCreateBatchValidation:

    def test_empty(self, batch_service, department):
        with pytest.raises(EmptyBatchError):
            batch_service.create_batch(department.id, [])

    def test_duplicate_ids(self, make_approved_receipt, batch_service, department):
        receipt = make_approved_receipt()
        with pytest.raises(BatchMembershipError):
            batch_service.create_batch(department.id, [receipt.id, receipt.id])

    def test_unknown_department(self, make_approved_receipt, batch_service):
        with pytest.raises(DepartmentNotFoundError):
            batch_service.create_batch(uuid4(), [make_approved_receipt().id])

    def test_unknown_receipt(self, batch_service, department):
        with pytest.raises(ReceiptNotFoundError):
            batch_service.create_batch(department.id, [uuid4()])

    def test_receipt_not_approved(self, make_receipt, batch_service, department):
        with pytest.raises(InvalidStateTransitionError):
            batch_service.create_batch(department.id, [make_receipt().id])

    def test_receipt_from_other_department(self, make_approved_receipt, batch_service,
                                           department_service):
        other = department_service.get_or_create_department("Operations")
        with pytest.raises(BatchMembershipError):
            batch_service.create_batch(other.id, [make_approved_receipt().id])

    def test_already_batched(self, make_approved_receipt, batch_service, department):
        receipt = make_approved_receipt()
        batch_service.create_batch(department.id, [receipt.id])
        with pytest.raises(BatchMembershipError):
            batch_service.create_batch(department.id, [receipt.id])

    def test_all_or_nothing(self, make_approved_receipt, make_receipt, batch_service,
                            batch_selector, receipt_selector, department):
        good = make_approved_receipt()
        pending = make_receipt()
        with pytest.raises(InvalidStateTransitionError):
            batch_service.create_batch(department.id, [good.id, pending.id])
        assert receipt_selector.get(good.id).batch_id is None
        assert batch_selector.list_by_department(department.id) == []

    def test_only_admin_creates(self, make_approved_receipt, batch_service, department):
        with pytest.raises(InvalidActorError):
            batch_service.create_batch(
                department.id, [make_approved_receipt().id], actor_role=ActorRole.HOD
            )


class TestApprovalGuards:

    def test_double_hod_approval(self, make_approved_receipt, batch_service,
                                 activity_selector, department):
        batch = batch_service.create_batch(department.id, [make_approved_receipt().id])
        batch_service.hod_approve(batch.id)
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            batch_service.hod_approve(batch.id)
        assert exc_info.value.current_state == "pending_finance"
        assert len(activity_selector.list_by_entity(EntityType.BATCH, batch.id)) == 2

    def test_finance_before_hod(self, make_approved_receipt, batch_service, department):
        batch = batch_service.create_batch(department.id, [make_approved_receipt().id])
        with pytest.raises(InvalidStateTransitionError):
            batch_service.finance_approve(batch.id)

    def test_double_disbursement(self, make_approved_receipt, batch_service, department):
        batch = batch_service.create_batch(department.id, [make_approved_receipt().id])
        batch_service.hod_approve(batch.id)
        batch_service.finance_approve(batch.id)
        with pytest.raises(InvalidStateTransitionError):
            batch_service.finance_approve(batch.id)

    def test_wrong_persona(self, make_approved_receipt, batch_service, department):
        batch = batch_service.create_batch(department.id, [make_approved_receipt().id])
        with pytest.raises(InvalidActorError):
            batch_service.hod_approve(batch.id, actor_role=ActorRole.FINANCE)
        batch_service.hod_approve(batch.id)
        with pytest.raises(InvalidActorError):
            batch_service.finance_approve(batch.id, actor_role=ActorRole.HOD)

    def test_unknown_batch(self, batch_service):
        with pytest.raises(BatchNotFoundError):
            batch_service.hod_approve(uuid4())

    def test_rejection_after_hod_approval(self, make_approved_receipt, batch_service,
                                          receipt_service, department):
        a = make_approved_receipt(amount="40.00", gst="3.30")
        b = make_approved_receipt(amount="10.00", gst="0.83")
        batch = batch_service.create_batch(department.id, [a.id, b.id])
        batch_service.hod_approve(batch.id)

        receipt_service.reject(a.id, "Receipt illegible", ActorRole.FINANCE, "Ms Ng")
        paid = batch_service.finance_approve(batch.id)
        assert paid.total_amount == Decimal("10.00")
        assert [r.id for r in paid.receipts] == [b.id]


class TestRecalculateTotals:

    def test_idempotent(self, make_approved_receipt, batch_service, department):
        a = make_approved_receipt(amount="12.34", gst="1.02")
        b = make_approved_receipt(amount="7.66", gst="0.63")
        batch = batch_service.create_batch(department.id, [a.id, b.id])

        first = batch_service.recalculate_totals(batch.id)
        second = batch_service.recalculate_totals(batch.id)
        assert first.total_amount == second.total_amount == Decimal("20.00")
        assert first.total_gst == second.total_gst == Decimal("1.65")

    def test_null_amounts_count_as_zero(self, make_approved_receipt, batch_service,
                                        department):
        a = make_approved_receipt(amount=None, gst=None)
        b = make_approved_receipt(amount="5.00", gst=None)
        batch = batch_service.create_batch(department.id, [a.id, b.id])
        assert batch.total_amount == Decimal("5.00")
        assert batch.total_gst == Decimal("0.00")
