"""
Module: pettycash_kernel.selectors.analytics_selector
Responsibility: Read-only rollups over recently created receipts.

The window is the last ``window_days`` days of receipt creation, optionally
narrowed to one department.  Receipts are loaded once and every rollup is
computed from that snapshot, so the figures in one report always agree.

Populations:
    - Spend figures (totals, averages, category/department/staff/merchant
      rollups, daily spending, anomalies) exclude rejected receipts.
    - total_receipts, by_status and flagged_receipts cover every receipt in
      the window.
    - Approval and rejection rates are over decided receipts only
      (anything not still ``submitted``).
    - GL coding covers paid receipts only.
"""

from collections import defaultdict
from datetime import timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from pettycash_kernel.db.types import ZERO, round_money, sum_money
from pettycash_kernel.domain.analytics import (
    AnalyticsReport,
    Anomaly,
    AnomalyType,
    CategoryRollup,
    DailySpending,
    DepartmentRollup,
    GlCodingRow,
    MerchantRollup,
    Severity,
    SpendSummary,
    StaffRollup,
    StatusRollup,
    format_sgd,
    percentage,
)
from pettycash_kernel.domain.clock import Clock, SystemClock
from pettycash_kernel.domain.dtos import ReceiptDTO
from pettycash_kernel.domain.values import (
    APPROVED_STATUSES,
    UNKNOWN_MERCHANT,
    ReceiptStatus,
)
from pettycash_kernel.logging_config import get_logger
from pettycash_kernel.models.receipt import Receipt
from pettycash_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.analytics")


def _amount(receipt: ReceiptDTO) -> Decimal:
    return receipt.amount_total if receipt.amount_total is not None else ZERO


def _average(total: Decimal, count: int) -> Decimal:
    return round_money(total / count) if count else ZERO


def _ranked(groups: dict):
    """Group items sorted by total amount descending, then by group key."""
    return sorted(
        groups.items(),
        key=lambda kv: (-sum_money(_amount(r) for r in kv[1]), kv[0]),
    )


class AnalyticsSelector(BaseSelector):
    """Computes AnalyticsReport snapshots."""

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        window_days: int = 14,
        high_value_threshold: Decimal = Decimal("200.00"),
        low_confidence_threshold: int = 70,
        top_merchant_count: int = 5,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._window_days = window_days
        self._high_value_threshold = high_value_threshold
        self._low_confidence_threshold = low_confidence_threshold
        self._top_merchant_count = top_merchant_count

    def _load(self, department_id: UUID | None) -> list[ReceiptDTO]:
        since = self._clock.now() - timedelta(days=self._window_days)
        query = select(Receipt).where(Receipt.created_at >= since)
        if department_id is not None:
            query = query.where(Receipt.department_id == department_id)
        query = query.order_by(Receipt.created_at, Receipt.id)

        return self._degrading_list(
            "analytics_receipts",
            lambda: [r.to_dto() for r in self.session.execute(query).scalars()],
        )

    def get_analytics(self, department_id: UUID | None = None) -> AnalyticsReport:
        receipts = self._load(department_id)
        spend = [r for r in receipts if r.status != ReceiptStatus.REJECTED]

        report = AnalyticsReport(
            window_days=self._window_days,
            department_id=department_id,
            summary=self._summary(receipts, spend),
            by_category=self._by_category(spend),
            by_department=self._by_department(spend),
            by_staff=self._by_staff(spend),
            by_status=self._by_status(receipts),
            top_merchants=self._top_merchants(spend),
            anomalies=self._anomalies(spend),
            daily_spending=self._daily_spending(spend),
            flagged_receipts=tuple(r for r in receipts if r.ai_flags),
            gl_coding=self._gl_coding(receipts),
            high_value_threshold=self._high_value_threshold,
        )
        logger.info(
            "analytics_computed",
            extra={
                "department_id": str(department_id) if department_id else None,
                "window_days": self._window_days,
                "receipt_count": len(receipts),
                "anomaly_count": len(report.anomalies),
            },
        )
        return report

    # ------------------------------------------------------------------
    # Rollups
    # ------------------------------------------------------------------

    def _summary(self, receipts, spend) -> SpendSummary:
        total = sum_money(r.amount_total for r in spend)
        decided = [r for r in receipts if r.status != ReceiptStatus.SUBMITTED]
        approved = [r for r in decided if r.status in APPROVED_STATUSES]
        rejected = [r for r in decided if r.status == ReceiptStatus.REJECTED]
        return SpendSummary(
            total_receipts=len(receipts),
            total_amount=total,
            total_gst=sum_money(r.amount_gst for r in spend),
            average_amount=_average(total, len(spend)),
            approval_rate=percentage(len(approved), len(decided)),
            rejection_rate=percentage(len(rejected), len(decided)),
        )

    def _by_category(self, spend) -> tuple[CategoryRollup, ...]:
        grand_total = sum_money(_amount(r) for r in spend)
        groups = defaultdict(list)
        for r in spend:
            groups[r.category.value].append(r)
        rows = []
        for category, members in _ranked(groups):
            total = sum_money(_amount(r) for r in members)
            rows.append(CategoryRollup(
                category=category,
                count=len(members),
                total_amount=total,
                average_amount=_average(total, len(members)),
                percentage=percentage(total, grand_total),
            ))
        return tuple(rows)

    def _by_department(self, spend) -> tuple[DepartmentRollup, ...]:
        groups = defaultdict(list)
        for r in spend:
            groups[r.department_name].append(r)
        rows = []
        for name, members in _ranked(groups):
            total = sum_money(_amount(r) for r in members)
            rows.append(DepartmentRollup(
                department=name,
                count=len(members),
                total_amount=total,
                average_amount=_average(total, len(members)),
            ))
        return tuple(rows)

    def _by_staff(self, spend) -> tuple[StaffRollup, ...]:
        groups = defaultdict(list)
        for r in spend:
            groups[(r.staff_name, r.department_name)].append(r)
        return tuple(
            StaffRollup(
                staff_name=staff_name,
                department=department,
                count=len(members),
                total_amount=sum_money(_amount(r) for r in members),
            )
            for (staff_name, department), members in _ranked(groups)
        )

    def _by_status(self, receipts) -> tuple[StatusRollup, ...]:
        groups = defaultdict(list)
        for r in receipts:
            groups[r.status.value].append(r)
        # Lifecycle order.
        return tuple(
            StatusRollup(
                status=status.value,
                count=len(groups[status.value]),
                total_amount=sum_money(_amount(r) for r in groups[status.value]),
            )
            for status in ReceiptStatus
            if status.value in groups
        )

    def _top_merchants(self, spend) -> tuple[MerchantRollup, ...]:
        groups = defaultdict(list)
        for r in spend:
            groups[r.merchant_name or UNKNOWN_MERCHANT].append(r)
        ranked = _ranked(groups)[: self._top_merchant_count]
        return tuple(
            MerchantRollup(
                merchant=merchant,
                count=len(members),
                total_amount=sum_money(_amount(r) for r in members),
            )
            for merchant, members in ranked
        )

    def _daily_spending(self, spend) -> tuple[DailySpending, ...]:
        groups = defaultdict(list)
        for r in spend:
            groups[r.created_at.date()].append(r)
        return tuple(
            DailySpending(
                date=day,
                amount=sum_money(_amount(r) for r in members),
                count=len(members),
            )
            for day, members in sorted(groups.items())
        )

    def _gl_coding(self, receipts) -> tuple[GlCodingRow, ...]:
        groups = defaultdict(list)
        for r in receipts:
            if r.status == ReceiptStatus.PAID:
                groups[r.category.value].append(r)
        rows = []
        for category, members in sorted(groups.items()):
            total = sum_money(_amount(r) for r in members)
            gst = sum_money(r.amount_gst for r in members)
            rows.append(GlCodingRow(
                category=category,
                count=len(members),
                total_amount=total,
                total_gst=gst,
                net_amount=total - gst,
            ))
        return tuple(rows)

    # ------------------------------------------------------------------
    # Anomalies
    # ------------------------------------------------------------------

    def _anomalies(self, spend) -> tuple[Anomaly, ...]:
        anomalies = []

        high_value = [r for r in spend if _amount(r) > self._high_value_threshold]
        if high_value:
            anomalies.append(Anomaly(
                type=AnomalyType.HIGH_VALUE,
                description=(
                    f"{len(high_value)} receipts exceed "
                    f"{format_sgd(self._high_value_threshold)}"
                ),
                severity=Severity.MEDIUM,
                details={
                    "receipt_ids": [str(r.id) for r in high_value],
                    "total_amount": str(sum_money(_amount(r) for r in high_value)),
                },
            ))

        duplicates = self._duplicate_groups(spend)
        if duplicates:
            anomalies.append(Anomaly(
                type=AnomalyType.POSSIBLE_DUPLICATES,
                description=(
                    f"{len(duplicates)} possible duplicate claims "
                    "(same merchant, amount and date)"
                ),
                severity=Severity.HIGH,
                details={"groups": [[str(r.id) for r in g] for g in duplicates]},
            ))

        flagged = [r for r in spend if r.ai_flags]
        if flagged:
            anomalies.append(Anomaly(
                type=AnomalyType.POLICY_FLAGS,
                description=f"{len(flagged)} receipts carry policy flags",
                severity=Severity.MEDIUM,
                details={
                    "receipt_ids": [str(r.id) for r in flagged],
                    "flags": sorted({f for r in flagged for f in r.ai_flags}),
                },
            ))

        low_confidence = [
            r for r in spend
            if r.ai_confidence is not None and r.ai_confidence < self._low_confidence_threshold
        ]
        if low_confidence:
            anomalies.append(Anomaly(
                type=AnomalyType.LOW_CONFIDENCE,
                description=(
                    f"{len(low_confidence)} receipts were extracted with confidence "
                    f"below {self._low_confidence_threshold}%"
                ),
                severity=Severity.LOW,
                details={"receipt_ids": [str(r.id) for r in low_confidence]},
            ))

        return tuple(anomalies)

    @staticmethod
    def _duplicate_groups(spend) -> list[list[ReceiptDTO]]:
        groups = defaultdict(list)
        for r in spend:
            if r.merchant_name and r.amount_total is not None and r.transaction_date:
                key = (r.merchant_name.strip().lower(), r.amount_total, r.transaction_date)
                groups[key].append(r)
        return [g for g in groups.values() if len(g) > 1]
