"""Narrative summary generated from an analytics report."""

from decimal import Decimal

from pettycash_kernel.domain.analytics import (
    DEFAULT_RECOMMENDATION,
    AnalyticsReport,
    Anomaly,
    AnomalyType,
    CategoryRollup,
    DepartmentRollup,
    MerchantRollup,
    Severity,
    SpendSummary,
    format_sgd,
    percentage,
    summarize,
)


def _report(summary=None, anomalies=(), by_category=(), top_merchants=(), by_department=(),
            window_days=14):
    return AnalyticsReport(
        window_days=window_days,
        department_id=None,
        summary=summary or SpendSummary(
            total_receipts=0,
            total_amount=Decimal("0.00"),
            total_gst=Decimal("0.00"),
            average_amount=Decimal("0.00"),
            approval_rate=Decimal("0.0"),
            rejection_rate=Decimal("0.0"),
        ),
        by_category=tuple(by_category),
        by_department=tuple(by_department),
        by_staff=(),
        by_status=(),
        top_merchants=tuple(top_merchants),
        anomalies=tuple(anomalies),
        daily_spending=(),
        flagged_receipts=(),
        gl_coding=(),
    )


class TestHelpers:

    def test_percentage(self):
        assert percentage(1, 3) == Decimal("33.3")
        assert percentage(2, 3) == Decimal("66.7")
        assert percentage(5, 0) == Decimal("0.0")

    def test_format_sgd(self):
        assert format_sgd(Decimal("1234.5")) == "S$1,234.50"


class TestSummarize:

    def test_empty_report(self):
        summary = summarize(_report())
        assert summary.executive_summary == (
            "Over the past 2 weeks, 0 receipts totaling S$0.00 were processed "
            "with an approval rate of 0.0%."
        )
        assert summary.key_insights == ("Total spending: S$0.00 across 0 receipts",)
        assert summary.recommendations == (DEFAULT_RECOMMENDATION,)
        assert summary.risk_alerts == ()

    def test_one_week_window_phrase(self):
        summary = summarize(_report(window_days=7))
        assert summary.executive_summary.startswith("Over the past week,")

    def test_insights_and_recommendations(self):
        report = _report(
            summary=SpendSummary(
                total_receipts=4,
                total_amount=Decimal("480.00"),
                total_gst=Decimal("39.63"),
                average_amount=Decimal("120.00"),
                approval_rate=Decimal("75.0"),
                rejection_rate=Decimal("25.0"),
            ),
            by_category=[
                CategoryRollup("Business Meals", 3, Decimal("280.00"), Decimal("93.33"),
                               Decimal("58.3")),
            ],
            top_merchants=[MerchantRollup("Kopitiam", 2, Decimal("200.00"))],
            by_department=[
                DepartmentRollup("Operations", 3, Decimal("400.00"), Decimal("133.33")),
                DepartmentRollup("Logistics", 1, Decimal("80.00"), Decimal("80.00")),
            ],
            anomalies=[
                Anomaly(AnomalyType.HIGH_VALUE, "1 receipts exceed S$200.00", Severity.MEDIUM,
                        {"receipt_ids": ["a"]}),
                Anomaly(AnomalyType.POLICY_FLAGS, "2 receipts carry policy flags",
                        Severity.MEDIUM, {"receipt_ids": ["a", "b"]}),
                Anomaly(AnomalyType.LOW_CONFIDENCE, "1 receipts were extracted with "
                        "confidence below 70%", Severity.LOW, {"receipt_ids": ["c"]}),
            ],
        )
        summary = summarize(report)

        assert "approval rate of 75.0%" in summary.executive_summary
        assert "Average receipt value: S$120.00" in summary.key_insights
        assert "Top category: Business Meals (S$280.00, 58.3%)" in summary.key_insights
        assert "Top merchant: Kopitiam (2 receipts, S$200.00)" in summary.key_insights
        assert "Highest-spending department: Operations" in summary.key_insights

        assert "Review 2 flagged receipts for policy compliance" in summary.recommendations
        assert "Monitor high-value transactions above S$200.00" in summary.recommendations
        assert any("25.0%" in r for r in summary.recommendations)
        assert DEFAULT_RECOMMENDATION not in summary.recommendations

        # Low severity anomalies are not risk alerts.
        assert summary.risk_alerts == (
            "1 receipts exceed S$200.00",
            "2 receipts carry policy flags",
        )

    def test_summary_is_deterministic(self):
        report = _report()
        assert summarize(report) == summarize(report)
