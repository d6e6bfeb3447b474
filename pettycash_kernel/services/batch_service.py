"""
BatchService -- top-up request aggregation and its approval chain.

Responsibility:
    Group admin-approved receipts into a batch, run the HOD approval (with
    optional line-item rejections) and the finance disbursement, and keep the
    batch totals equal to the sum of its current members.

Architecture position:
    Kernel > Services.  Composes ReceiptService (``auto_commit=False``) for
    line-item rejections and ActivityLogService for the audit trail.

Invariants enforced:
    - create_batch is one transaction: the batch row, every member's
      ``batch_id`` and the audit entry commit together or not at all.
    - HOD approval and disbursement lock the batch row (SELECT ... FOR UPDATE)
      and re-check its status under the lock, so the loser of two concurrent
      approvals gets InvalidStateTransitionError and changes nothing.
    - Line-item rejections are applied before totals are recomputed, and
      totals are recomputed before the batch advances.
    - Audit: N ``hod_rejected`` receipt entries + 1 batch entry per HOD
      approval; 1 ``paid`` batch entry per disbursement.  Member receipts that
      simply advance with the batch get no entry of their own.

Failure modes:
    - BatchNotFoundError, DepartmentNotFoundError, ReceiptNotFoundError.
    - EmptyBatchError, BatchMembershipError, InvalidActorError.
    - InvalidStateTransitionError for a batch or member in the wrong state.
    - StorageUnavailableError if the database is unreachable.
"""

from __future__ import annotations

from typing import Mapping, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from pettycash_kernel.domain.clock import Clock, SystemClock
from pettycash_kernel.domain.dtos import BatchDTO
from pettycash_kernel.domain.values import (
    DEFAULT_HOD_REJECTION_REASON,
    ROLE_LABELS,
    ActivityAction,
    ActorRole,
    EntityType,
    ReceiptStatus,
)
from pettycash_kernel.domain.workflows import BATCH_WORKFLOW, RECEIPT_WORKFLOW
from pettycash_kernel.exceptions import (
    BatchMembershipError,
    BatchNotFoundError,
    DepartmentNotFoundError,
    EmptyBatchError,
    InvalidActorError,
    InvalidStateTransitionError,
    ReceiptNotFoundError,
)
from pettycash_kernel.logging_config import LogContext, get_logger
from pettycash_kernel.models.batch import Batch
from pettycash_kernel.models.department import Department
from pettycash_kernel.models.receipt import Receipt
from pettycash_kernel.services._transaction import write_scope
from pettycash_kernel.services.activity_log_service import ActivityLogService
from pettycash_kernel.services.batch_totals import recalculate_batch_totals
from pettycash_kernel.services.receipt_service import ReceiptService
from pettycash_kernel.services.sequence_service import SequenceService

logger = get_logger("services.batch")


def _require_role(actor_role, allowed: ActorRole, action: str) -> ActorRole:
    role = ActorRole.parse(actor_role, action)
    if role is not allowed:
        raise InvalidActorError(role.value, action)
    return role


class BatchService:
    """
    Top-up request lifecycle.

    Contract:
        ``create_batch`` -> ``hod_approve`` -> ``finance_approve``.  Each
        returns the batch with its current member receipts.

    Guarantees:
        - Transaction committed on success unless ``auto_commit=False``;
          rolled back on any error.

    Non-goals:
        - No bank integration; disbursement is a status change.
        - Batches never enter the reserved ``approved`` / ``rejected`` states.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        activity_log: ActivityLogService | None = None,
        receipt_service: ReceiptService | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._activity = activity_log or ActivityLogService(session, self._clock)
        self._receipts = receipt_service or ReceiptService(
            session, self._clock, activity_log=self._activity, auto_commit=False
        )
        self._sequence = SequenceService(session)
        self._auto_commit = auto_commit

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _lock_batch(self, batch_id: UUID) -> Batch:
        batch = self._session.execute(
            select(Batch)
            .where(Batch.id == batch_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if batch is None:
            raise BatchNotFoundError(batch_id)
        return batch

    def _members(self, batch: Batch) -> list[Receipt]:
        return list(
            self._session.execute(
                select(Receipt)
                .where(Receipt.batch_id == batch.id)
                .order_by(Receipt.category, Receipt.created_at)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalars()
        )

    def _to_dto(self, batch: Batch) -> BatchDTO:
        members = self._session.execute(
            select(Receipt)
            .where(Receipt.batch_id == batch.id)
            .order_by(Receipt.category, Receipt.created_at)
        ).scalars()
        return batch.to_dto(receipts=members)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_batch(
        self,
        department_id: UUID,
        receipt_ids: Sequence[UUID],
        actor_role: ActorRole | str = ActorRole.ADMIN,
        actor_name: str | None = None,
    ) -> BatchDTO:
        """
        Group admin-approved, unbatched receipts of one department into a
        new top-up request in ``pending_hod``.

        Raises:
            EmptyBatchError: no receipt ids.
            BatchMembershipError: duplicate id, wrong department, or already
                batched.
            InvalidStateTransitionError: a receipt is not admin_approved.
        """
        role = _require_role(actor_role, ActorRole.ADMIN, "create_batch")
        actor_name = actor_name or ROLE_LABELS[role]
        receipt_ids = [UUID(str(rid)) for rid in receipt_ids]
        if not receipt_ids:
            raise EmptyBatchError(department_id)
        seen: set[UUID] = set()
        for rid in receipt_ids:
            if rid in seen:
                raise BatchMembershipError(rid, "listed more than once")
            seen.add(rid)

        with write_scope(self._session, "create_batch", self._auto_commit):
            with LogContext.bind(department_id=department_id, actor_role=role.value):
                if self._session.get(Department, department_id) is None:
                    raise DepartmentNotFoundError(department_id)

                receipts = {
                    r.id: r
                    for r in self._session.execute(
                        select(Receipt)
                        .where(Receipt.id.in_(list(receipt_ids)))
                        .with_for_update()
                        .execution_options(populate_existing=True)
                    ).scalars()
                }
                for rid in receipt_ids:
                    receipt = receipts.get(rid)
                    if receipt is None:
                        raise ReceiptNotFoundError(rid)
                    if receipt.department_id != department_id:
                        raise BatchMembershipError(
                            rid, "belongs to a different department"
                        )
                    if receipt.status != ReceiptStatus.ADMIN_APPROVED.value:
                        raise InvalidStateTransitionError(
                            "receipt", rid, receipt.status, "batch"
                        )
                    if receipt.batch_id is not None:
                        raise BatchMembershipError(
                            rid, "already belongs to a batch", receipt.batch_id
                        )

                now = self._clock.now()
                batch = Batch(
                    batch_number=self._sequence.next_value(SequenceService.BATCH_NUMBER),
                    department_id=department_id,
                    status=BATCH_WORKFLOW.initial_state,
                    created_at=now,
                    updated_at=now,
                )
                self._session.add(batch)
                self._session.flush()

                for rid in receipt_ids:
                    receipts[rid].batch_id = batch.id
                self._session.flush()
                recalculate_batch_totals(self._session, batch)

                self._activity.log(
                    entity_type=EntityType.BATCH,
                    entity_id=batch.id,
                    department_id=department_id,
                    action=ActivityAction.BATCH_CREATED,
                    actor_role=role,
                    actor_name=actor_name,
                    description=(
                        f"Top-up request #{batch.batch_number} created with "
                        f"{len(receipt_ids)} receipts"
                    ),
                    metadata={
                        "receiptCount": len(receipt_ids),
                        "receiptIds": list(receipt_ids),
                        "totalAmount": batch.total_amount,
                        "totalGst": batch.total_gst,
                    },
                )
                logger.info(
                    "batch_created",
                    extra={
                        "batch_id": str(batch.id),
                        "batch_number": batch.batch_number,
                        "receipt_count": len(receipt_ids),
                        "total_amount": batch.total_amount,
                    },
                )
                return self._to_dto(batch)

    # ------------------------------------------------------------------
    # HOD approval
    # ------------------------------------------------------------------

    def hod_approve(
        self,
        batch_id: UUID,
        rejected_receipt_ids: Sequence[UUID] = (),
        rejection_reasons: Mapping[UUID | str, str] | None = None,
        actor_role: ActorRole | str = ActorRole.HOD,
        actor_name: str | None = None,
    ) -> BatchDTO:
        """
        Approve a batch, optionally rejecting some of its receipts first.

        The batch always advances to ``pending_finance``, even when every
        member was rejected (totals 0.00).

        Raises:
            BatchMembershipError: a rejected id is not a current member.
            InvalidStateTransitionError: batch is not ``pending_hod``.
        """
        role = _require_role(actor_role, ActorRole.HOD, "hod_approve")
        actor_name = actor_name or ROLE_LABELS[role]
        reasons = rejection_reasons or {}
        to_reject = list(dict.fromkeys(UUID(str(rid)) for rid in rejected_receipt_ids))

        with write_scope(self._session, "hod_approve", self._auto_commit):
            with LogContext.bind(batch_id=batch_id, actor_role=role.value):
                batch = self._lock_batch(batch_id)
                transition = BATCH_WORKFLOW.resolve(batch.status, "hod_approve", batch.id)

                member_ids = {r.id for r in self._members(batch)}
                for rid in to_reject:
                    if rid not in member_ids:
                        raise BatchMembershipError(
                            rid, "is not a member of this batch", batch.id
                        )

                for rid in to_reject:
                    reason = (
                        reasons.get(rid) or reasons.get(str(rid)) or ""
                    ).strip() or DEFAULT_HOD_REJECTION_REASON
                    self._receipts.reject(rid, reason, role, actor_name)

                recalculate_batch_totals(self._session, batch)

                now = self._clock.now()
                approved_count = 0
                for receipt in self._members(batch):
                    if receipt.status != ReceiptStatus.ADMIN_APPROVED.value:
                        continue
                    step = RECEIPT_WORKFLOW.resolve(receipt.status, "hod_approve", receipt.id)
                    receipt.status = step.to_state
                    receipt.hod_approved_at = now
                    approved_count += 1

                batch.status = transition.to_state
                batch.hod_approved_at = now
                self._session.flush()

                rejected_count = len(to_reject)
                if rejected_count:
                    action = ActivityAction.HOD_PARTIAL_APPROVED
                    description = (
                        f"Top-up request #{batch.batch_number} partially approved: "
                        f"{approved_count} approved, {rejected_count} rejected"
                    )
                else:
                    action = ActivityAction.HOD_APPROVED
                    description = (
                        f"Top-up request #{batch.batch_number} fully approved with "
                        f"{approved_count} receipts"
                    )
                self._activity.log(
                    entity_type=EntityType.BATCH,
                    entity_id=batch.id,
                    department_id=batch.department_id,
                    action=action,
                    actor_role=role,
                    actor_name=actor_name,
                    description=description,
                    metadata={
                        "approvedCount": approved_count,
                        "rejectedCount": rejected_count,
                        "rejectedReceiptIds": to_reject,
                        "totalAmount": batch.total_amount,
                        "totalGst": batch.total_gst,
                    },
                )
                logger.info(
                    "batch_hod_approved",
                    extra={
                        "approved_count": approved_count,
                        "rejected_count": rejected_count,
                        "total_amount": batch.total_amount,
                    },
                )
                return self._to_dto(batch)

    # ------------------------------------------------------------------
    # Finance disbursement
    # ------------------------------------------------------------------

    def finance_approve(
        self,
        batch_id: UUID,
        actor_role: ActorRole | str = ActorRole.FINANCE,
        actor_name: str | None = None,
    ) -> BatchDTO:
        """
        Disburse a batch: every ``hod_approved`` member becomes ``paid`` and
        the batch becomes ``paid``.  Paid receipts drop out of the float's
        used amount, which is how the float is restored.

        Raises:
            InvalidStateTransitionError: batch is not ``pending_finance``.
        """
        role = _require_role(actor_role, ActorRole.FINANCE, "finance_approve")
        actor_name = actor_name or ROLE_LABELS[role]

        with write_scope(self._session, "finance_approve", self._auto_commit):
            with LogContext.bind(batch_id=batch_id, actor_role=role.value):
                batch = self._lock_batch(batch_id)
                transition = BATCH_WORKFLOW.resolve(
                    batch.status, "finance_approve", batch.id
                )

                recalculate_batch_totals(self._session, batch)

                now = self._clock.now()
                paid_count = 0
                for receipt in self._members(batch):
                    if receipt.status != ReceiptStatus.HOD_APPROVED.value:
                        continue
                    step = RECEIPT_WORKFLOW.resolve(receipt.status, "disburse", receipt.id)
                    receipt.status = step.to_state
                    receipt.paid_at = now
                    paid_count += 1

                batch.status = transition.to_state
                batch.finance_approved_at = now
                batch.paid_at = now
                self._session.flush()

                self._activity.log(
                    entity_type=EntityType.BATCH,
                    entity_id=batch.id,
                    department_id=batch.department_id,
                    action=ActivityAction.PAID,
                    actor_role=role,
                    actor_name=actor_name,
                    description=(
                        f"Top-up request #{batch.batch_number} approved and disbursed - "
                        f"${batch.total_amount}"
                    ),
                    metadata={
                        "totalAmount": batch.total_amount,
                        "totalGst": batch.total_gst,
                        "paidCount": paid_count,
                    },
                )
                logger.info(
                    "batch_disbursed",
                    extra={"paid_count": paid_count, "total_amount": batch.total_amount},
                )
                return self._to_dto(batch)

    # ------------------------------------------------------------------
    # Totals
    # ------------------------------------------------------------------

    def recalculate_totals(self, batch_id: UUID) -> BatchDTO:
        """Full re-sum of the batch totals.  Idempotent."""
        with write_scope(self._session, "recalculate_batch_totals", self._auto_commit):
            batch = self._lock_batch(batch_id)
            recalculate_batch_totals(self._session, batch)
            return self._to_dto(batch)
