"""
ReceiptService -- the receipt lifecycle state machine.

Responsibility:
    Create a claim, approve it at the admin stage, and reject it at any
    pre-paid stage.  The batch-driven transitions (HOD approval, payment) are
    applied by BatchService against the same workflow table.

Architecture position:
    Kernel > Services.  Composes ActivityLogService; BatchService composes
    this service with ``auto_commit=False`` for line-item rejections.

Invariants enforced:
    - Every status change resolves through RECEIPT_WORKFLOW; a wrong source
      state raises InvalidStateTransitionError before any write.  Terminal
      states (paid, rejected) have no outgoing transitions.
    - Rejection clears ``batch_id`` unconditionally and recomputes the former
      batch's totals in the same transaction.
    - The receipt row is locked (SELECT ... FOR UPDATE) before mutation, so two
      concurrent approvals cannot both succeed.  When the receipt is batched,
      the batch row is locked first, matching BatchService's lock order.
    - Exactly one activity entry per transition.

Failure modes:
    - ReceiptNotFoundError / StaffNotFoundError / DepartmentNotFoundError.
    - InvalidCategoryError, InvalidAmountError, MissingRejectionReasonError,
      InvalidActorError, ValidationError -- raised before any write.
    - StorageUnavailableError if the database is unreachable.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from pettycash_kernel.db.types import to_money
from pettycash_kernel.domain.clock import Clock, SystemClock
from pettycash_kernel.domain.dtos import ReceiptDTO
from pettycash_kernel.domain.extraction import DEFAULT_MAX_AGE_DAYS, flags_with_age_policy
from pettycash_kernel.domain.values import (
    REJECTION_ACTION_BY_ROLE,
    ROLE_LABELS,
    UNKNOWN_MERCHANT,
    ActivityAction,
    ActorRole,
    EntityType,
    ExpenseCategory,
    ReceiptStatus,
)
from pettycash_kernel.domain.workflows import RECEIPT_WORKFLOW
from pettycash_kernel.exceptions import (
    DepartmentNotFoundError,
    InvalidActorError,
    InvalidAmountError,
    MissingRejectionReasonError,
    ReceiptNotFoundError,
    StaffNotFoundError,
    ValidationError,
)
from pettycash_kernel.logging_config import LogContext, get_logger
from pettycash_kernel.models.batch import Batch
from pettycash_kernel.models.department import Department, Staff
from pettycash_kernel.models.receipt import Receipt
from pettycash_kernel.services._transaction import write_scope
from pettycash_kernel.services.activity_log_service import ActivityLogService
from pettycash_kernel.services.batch_totals import recalculate_batch_totals

logger = get_logger("services.receipt")


def _money_label(amount: Decimal | None) -> str:
    return str(amount) if amount is not None else "0.00"


def _coerce_date(value: date | str | None) -> date | None:
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"Invalid transaction date: {value!r}") from None


def _non_negative(field: str, value) -> Decimal | None:
    try:
        amount = to_money(value)
    except ValueError:
        raise InvalidAmountError(field, value, "not a number") from None
    if amount is not None and amount < 0:
        raise InvalidAmountError(field, amount, "must not be negative")
    return amount


class ReceiptService:
    """
    Receipt lifecycle transitions.

    Contract:
        Each public method validates its inputs, locks the receipt, resolves
        the transition, applies it, and writes one activity entry.

    Guarantees:
        - No partial mutation on any raised error.
        - Transaction committed on success unless ``auto_commit=False``.

    Non-goals:
        - Does NOT call the AI extraction service; the caller passes the
          (user-corrected) extraction fields in.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        activity_log: ActivityLogService | None = None,
        receipt_max_age_days: int = DEFAULT_MAX_AGE_DAYS,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._activity = activity_log or ActivityLogService(session, self._clock)
        self._max_age_days = receipt_max_age_days
        self._auto_commit = auto_commit

    # ------------------------------------------------------------------
    # Locking helpers
    # ------------------------------------------------------------------

    def _lock_receipt(self, receipt_id: UUID) -> Receipt:
        receipt = self._session.execute(
            select(Receipt)
            .where(Receipt.id == receipt_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if receipt is None:
            raise ReceiptNotFoundError(receipt_id)
        return receipt

    def _lock_receipt_and_batch(self, receipt_id: UUID) -> Receipt:
        """Lock the receipt's batch (if any) before the receipt itself.

        ``batch_id`` is read before either lock is held, so a concurrent
        ``create_batch`` can move the receipt into a batch in between.  The
        membership is re-checked under the receipt lock and the locks are
        retaken until they agree.  A receipt joins at most one batch and
        leaves it only by rejection, so this settles after one retry.
        """
        while True:
            batch_id = self._session.execute(
                select(Receipt.batch_id).where(Receipt.id == receipt_id)
            ).scalar_one_or_none()
            if batch_id is not None:
                self._session.execute(
                    select(Batch.id).where(Batch.id == batch_id).with_for_update()
                )
            receipt = self._lock_receipt(receipt_id)
            if receipt.batch_id == batch_id:
                return receipt
            logger.info(
                "receipt_batch_changed_while_locking",
                extra={
                    "receipt_id": str(receipt_id),
                    "expected_batch_id": str(batch_id) if batch_id else None,
                    "batch_id": str(receipt.batch_id) if receipt.batch_id else None,
                },
            )

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_receipt(
        self,
        *,
        staff_id: UUID,
        department_id: UUID,
        image_url: str,
        image_key: str,
        category: ExpenseCategory | str,
        merchant_name: str | None = None,
        transaction_date: date | str | None = None,
        amount_total: Decimal | float | str | None = None,
        amount_gst: Decimal | float | str | None = None,
        project_code: str | None = None,
        ai_confidence: int | None = None,
        ai_reasoning: str | None = None,
        ai_flags: Sequence[str] = (),
    ) -> ReceiptDTO:
        """
        Submit a claim.  Always lands in ``submitted``.

        The receipt-age rule is re-applied here because staff may have
        corrected the transaction date after extraction.

        Raises:
            InvalidCategoryError: category outside the enumeration.
            InvalidAmountError: negative amount or confidence outside 0-100.
            StaffNotFoundError / DepartmentNotFoundError.
            ValidationError: staff member is not in the department, or
                image reference missing.
        """
        category = ExpenseCategory.parse(category)
        amount_total = _non_negative("amount_total", amount_total)
        amount_gst = _non_negative("amount_gst", amount_gst)
        transaction_date = _coerce_date(transaction_date)
        if ai_confidence is not None and not 0 <= ai_confidence <= 100:
            raise InvalidAmountError("ai_confidence", ai_confidence, "must be 0-100")
        if not image_url or not image_key:
            raise ValidationError("Receipt image reference (url and key) is required")

        with write_scope(self._session, "create_receipt", self._auto_commit):
            department = self._session.get(Department, department_id)
            if department is None:
                raise DepartmentNotFoundError(department_id)
            staff = self._session.get(Staff, staff_id)
            if staff is None:
                raise StaffNotFoundError(staff_id)
            if staff.department_id != department.id:
                raise ValidationError(
                    f"Staff {staff_id} does not belong to department {department_id}"
                )

            now = self._clock.now()
            receipt = Receipt(
                image_url=image_url,
                image_key=image_key,
                staff_id=staff.id,
                staff_name=staff.name,
                department_id=department.id,
                department_name=department.name,
                merchant_name=(merchant_name or "").strip() or None,
                transaction_date=transaction_date,
                amount_total=amount_total,
                amount_gst=amount_gst,
                category=category,
                project_code=(project_code or "").strip() or None,
                ai_confidence=ai_confidence,
                ai_reasoning=ai_reasoning,
                ai_flags=flags_with_age_policy(
                    tuple(ai_flags), transaction_date, now.date(), self._max_age_days
                ),
                status=RECEIPT_WORKFLOW.initial_state,
                created_at=now,
                updated_at=now,
            )
            self._session.add(receipt)
            self._session.flush()

            self._activity.log(
                entity_type=EntityType.RECEIPT,
                entity_id=receipt.id,
                department_id=department.id,
                action=ActivityAction.SUBMITTED,
                actor_role=ActorRole.STAFF,
                actor_name=staff.name,
                description=(
                    f"Receipt submitted by {staff.name} for "
                    f"{receipt.merchant_name or UNKNOWN_MERCHANT} - "
                    f"${_money_label(amount_total)}"
                ),
                metadata={
                    "merchantName": receipt.merchant_name,
                    "amount": amount_total,
                    "category": category,
                },
            )
            logger.info(
                "receipt_submitted",
                extra={
                    "receipt_id": str(receipt.id),
                    "department_id": str(department.id),
                    "amount_total": amount_total,
                    "category": category.value,
                    "flag_count": len(receipt.ai_flags),
                },
            )
            return receipt.to_dto()

    # ------------------------------------------------------------------
    # Admin approval
    # ------------------------------------------------------------------

    def admin_approve(
        self,
        receipt_id: UUID,
        actor_role: ActorRole | str = ActorRole.ADMIN,
        actor_name: str | None = None,
    ) -> ReceiptDTO:
        """``submitted -> admin_approved``.  Amounts are not touched."""
        role = ActorRole.parse(actor_role, "admin_approve")
        actor_name = actor_name or ROLE_LABELS[role]

        with write_scope(self._session, "admin_approve", self._auto_commit):
            with LogContext.bind(receipt_id=receipt_id, actor_role=role.value):
                receipt = self._lock_receipt(receipt_id)
                transition = RECEIPT_WORKFLOW.resolve(
                    receipt.status, "admin_approve", receipt.id
                )
                if role.value not in transition.actor_roles:
                    raise InvalidActorError(role.value, "admin_approve")

                receipt.status = transition.to_state
                receipt.admin_approved_at = self._clock.now()
                self._session.flush()

                self._activity.log(
                    entity_type=EntityType.RECEIPT,
                    entity_id=receipt.id,
                    department_id=receipt.department_id,
                    action=ActivityAction.ADMIN_APPROVED,
                    actor_role=role,
                    actor_name=actor_name,
                    description=(
                        f"Receipt from {receipt.merchant_name or 'Unknown'} approved by "
                        f"{actor_name} - ${_money_label(receipt.amount_total)}"
                    ),
                    metadata={
                        "merchantName": receipt.merchant_name,
                        "amount": receipt.amount_total,
                    },
                )
                logger.info(
                    "receipt_admin_approved",
                    extra={"amount_total": receipt.amount_total},
                )
                return receipt.to_dto()

    # ------------------------------------------------------------------
    # Rejection
    # ------------------------------------------------------------------

    def reject(
        self,
        receipt_id: UUID,
        reason: str,
        actor_role: ActorRole | str,
        actor_name: str | None = None,
    ) -> ReceiptDTO:
        """
        ``{submitted, admin_approved, hod_approved} -> rejected``.

        Detaches the receipt from its batch and recomputes that batch's
        totals.  The audit verb follows the rejecting persona.

        Raises:
            InvalidActorError: staff (or an unknown role) tried to reject.
            MissingRejectionReasonError: blank reason.
            InvalidStateTransitionError: receipt already paid or rejected.
        """
        role = ActorRole.parse(actor_role, "reject")
        action = REJECTION_ACTION_BY_ROLE.get(role)
        if action is None:
            raise InvalidActorError(role.value, "reject")
        reason = (reason or "").strip()
        if not reason:
            raise MissingRejectionReasonError(receipt_id)
        actor_name = actor_name or ROLE_LABELS[role]

        with write_scope(self._session, "reject_receipt", self._auto_commit):
            with LogContext.bind(receipt_id=receipt_id, actor_role=role.value):
                receipt = self._lock_receipt_and_batch(receipt_id)
                transition = RECEIPT_WORKFLOW.resolve(receipt.status, "reject", receipt.id)

                previous_status = receipt.status
                previous_batch_id = receipt.batch_id

                receipt.status = transition.to_state
                receipt.batch_id = None
                receipt.rejected_by = actor_name
                receipt.rejection_reason = reason
                receipt.rejected_at = self._clock.now()
                self._session.flush()

                if previous_batch_id is not None:
                    batch = self._session.get(Batch, previous_batch_id)
                    recalculate_batch_totals(self._session, batch)

                self._activity.log(
                    entity_type=EntityType.RECEIPT,
                    entity_id=receipt.id,
                    department_id=receipt.department_id,
                    action=action,
                    actor_role=role,
                    actor_name=actor_name,
                    description=(
                        f"Receipt from {receipt.merchant_name or 'Unknown'} rejected by "
                        f"{actor_name}: {reason}"
                    ),
                    metadata={
                        "merchantName": receipt.merchant_name,
                        "amount": receipt.amount_total,
                        "reason": reason,
                        "previousStatus": previous_status,
                        "batchId": previous_batch_id,
                    },
                )
                logger.info(
                    "receipt_rejected",
                    extra={
                        "previous_status": previous_status,
                        "detached_from_batch": (
                            str(previous_batch_id) if previous_batch_id else None
                        ),
                    },
                )
                return receipt.to_dto()
