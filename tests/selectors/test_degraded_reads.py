"""
Storage-unavailable behaviour on the read side.

List reads degrade to an empty list; single-entity and float reads let the
error propagate.
"""

import pytest
from sqlalchemy.exc import OperationalError


@pytest.fixture
def broken_session(session, monkeypatch):
    def _execute(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    monkeypatch.setattr(session, "execute", _execute)
    return session


class TestDegradedReads:

    def test_list_reads_return_empty(self, department, broken_session, receipt_selector,
                                     batch_selector, activity_selector, department_selector,
                                     captured_logs):
        assert receipt_selector.list_by_department(department.id) == []
        assert batch_selector.list_pending_finance() == []
        assert activity_selector.list_by_department(department.id) == []
        assert department_selector.list_departments() == []
        degraded = [r for r in captured_logs() if r["message"] == "list_query_degraded"]
        assert len(degraded) == 4
        assert degraded[0]["query"] == "list_receipts_by_department"

    def test_float_read_propagates(self, department, broken_session, float_selector):
        with pytest.raises(OperationalError):
            float_selector.get_float(department.id)

    def test_analytics_degrades_to_empty_report(self, broken_session, analytics_selector):
        report = analytics_selector.get_analytics()
        assert report.summary.total_receipts == 0
        assert report.anomalies == ()
