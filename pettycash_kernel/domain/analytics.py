"""
Analytics read models and the narrative summary.

The report types are plain frozen dataclasses produced by AnalyticsSelector.
``summarize`` turns a report into the executive summary, insights,
recommendations and risk alerts shown on the analytics screen.  It is pure:
the same report always yields the same text.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pettycash_kernel.domain.dtos import ReceiptDTO

ONE_DP = Decimal("0.1")


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AnomalyType(str, Enum):
    HIGH_VALUE = "high_value_transactions"
    POLICY_FLAGS = "policy_flags"
    LOW_CONFIDENCE = "low_confidence_extractions"
    POSSIBLE_DUPLICATES = "possible_duplicates"


def percentage(part, whole) -> Decimal:
    """``part / whole`` as a percentage to one decimal place; 0 when whole is 0."""
    if not whole:
        return Decimal("0.0")
    return (Decimal(part) * 100 / Decimal(whole)).quantize(ONE_DP, rounding=ROUND_HALF_UP)


def format_sgd(amount: Decimal) -> str:
    return f"S${amount:,.2f}"


@dataclass(frozen=True)
class SpendSummary:
    total_receipts: int
    total_amount: Decimal
    total_gst: Decimal
    average_amount: Decimal
    approval_rate: Decimal
    rejection_rate: Decimal


@dataclass(frozen=True)
class CategoryRollup:
    category: str
    count: int
    total_amount: Decimal
    average_amount: Decimal
    percentage: Decimal


@dataclass(frozen=True)
class DepartmentRollup:
    department: str
    count: int
    total_amount: Decimal
    average_amount: Decimal


@dataclass(frozen=True)
class StaffRollup:
    staff_name: str
    department: str
    count: int
    total_amount: Decimal


@dataclass(frozen=True)
class StatusRollup:
    status: str
    count: int
    total_amount: Decimal


@dataclass(frozen=True)
class MerchantRollup:
    merchant: str
    count: int
    total_amount: Decimal


@dataclass(frozen=True)
class Anomaly:
    type: AnomalyType
    description: str
    severity: Severity
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DailySpending:
    date: date
    amount: Decimal
    count: int


@dataclass(frozen=True)
class GlCodingRow:
    """Paid spend for one expense category, split into net and GST."""
    category: str
    count: int
    total_amount: Decimal
    total_gst: Decimal
    net_amount: Decimal


@dataclass(frozen=True)
class AnalyticsReport:
    window_days: int
    department_id: UUID | None
    summary: SpendSummary
    by_category: tuple[CategoryRollup, ...]
    by_department: tuple[DepartmentRollup, ...]
    by_staff: tuple[StaffRollup, ...]
    by_status: tuple[StatusRollup, ...]
    top_merchants: tuple[MerchantRollup, ...]
    anomalies: tuple[Anomaly, ...]
    daily_spending: tuple[DailySpending, ...]
    flagged_receipts: tuple[ReceiptDTO, ...]
    gl_coding: tuple[GlCodingRow, ...]
    high_value_threshold: Decimal = Decimal("200.00")


@dataclass(frozen=True)
class NarrativeSummary:
    executive_summary: str
    key_insights: tuple[str, ...]
    recommendations: tuple[str, ...]
    risk_alerts: tuple[str, ...]


DEFAULT_RECOMMENDATION = "Review flagged receipts for policy compliance"

# Rejection rate (percent) above which claimants need a reminder.
HIGH_REJECTION_RATE = Decimal("20.0")


def _window_phrase(days: int) -> str:
    if days % 7 == 0:
        weeks = days // 7
        return "week" if weeks == 1 else f"{weeks} weeks"
    return "day" if days == 1 else f"{days} days"


def summarize(report: AnalyticsReport) -> NarrativeSummary:
    s = report.summary
    executive = (
        f"Over the past {_window_phrase(report.window_days)}, {s.total_receipts} receipts "
        f"totaling {format_sgd(s.total_amount)} were processed with an approval rate "
        f"of {s.approval_rate:.1f}%."
    )

    insights = [
        f"Total spending: {format_sgd(s.total_amount)} across {s.total_receipts} receipts",
    ]
    if s.total_receipts:
        insights.append(f"Average receipt value: {format_sgd(s.average_amount)}")
    if report.by_category:
        top = report.by_category[0]
        insights.append(
            f"Top category: {top.category} ({format_sgd(top.total_amount)}, {top.percentage:.1f}%)"
        )
    if report.top_merchants:
        m = report.top_merchants[0]
        insights.append(
            f"Top merchant: {m.merchant} ({m.count} receipts, {format_sgd(m.total_amount)})"
        )
    if len(report.by_department) > 1:
        insights.append(f"Highest-spending department: {report.by_department[0].department}")

    by_type = {a.type: a for a in report.anomalies}
    recommendations = []
    if AnomalyType.POLICY_FLAGS in by_type:
        n = len(by_type[AnomalyType.POLICY_FLAGS].details.get("receipt_ids", ()))
        recommendations.append(f"Review {n} flagged receipts for policy compliance")
    if AnomalyType.HIGH_VALUE in by_type:
        recommendations.append(
            f"Monitor high-value transactions above {format_sgd(report.high_value_threshold)}"
        )
    if AnomalyType.POSSIBLE_DUPLICATES in by_type:
        recommendations.append("Investigate possible duplicate claims before disbursement")
    if AnomalyType.LOW_CONFIDENCE in by_type:
        recommendations.append("Verify the details of low-confidence extractions against the images")
    if s.rejection_rate > HIGH_REJECTION_RATE:
        recommendations.append(
            f"Brief staff on claim requirements; {s.rejection_rate:.1f}% of decided receipts were rejected"
        )
    if not recommendations:
        recommendations.append(DEFAULT_RECOMMENDATION)

    risk_alerts = [
        a.description
        for a in report.anomalies
        if a.severity in (Severity.HIGH, Severity.MEDIUM)
    ]

    return NarrativeSummary(
        executive_summary=executive,
        key_insights=tuple(insights),
        recommendations=tuple(recommendations),
        risk_alerts=tuple(risk_alerts),
    )
