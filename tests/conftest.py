"""
Pytest fixtures for the petty cash test suite.

Provides:
- A fresh in-memory SQLite database per test (foreign keys on, SAVEPOINTs
  working), with activity-log immutability listeners registered
- A deterministic clock fixed at 2025-01-15 09:00 UTC
- Department, staff and receipt factories driven through the real services
- Fake extraction service and object store for intake tests
- captured_logs for asserting on structured log output

Environment Variables:
- PETTYCASH_TEST_DATABASE_URL: run against another database instead of
  in-memory SQLite (e.g. a disposable PostgreSQL database).  Tables are
  dropped and recreated for every test.
"""

import json
import logging
import os
from datetime import UTC, datetime
from decimal import Decimal
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from pettycash_kernel.db.engine import build_engine, create_tables, drop_tables
from pettycash_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from pettycash_kernel.domain.clock import DeterministicClock
from pettycash_kernel.domain.extraction import ReceiptExtraction, default_extraction
from pettycash_kernel.domain.values import ExpenseCategory
from pettycash_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from pettycash_kernel.selectors import (
    ActivitySelector,
    AnalyticsSelector,
    BatchSelector,
    DepartmentSelector,
    FloatSelector,
    ReceiptSelector,
)
from pettycash_kernel.services import (
    ActivityLogService,
    BatchService,
    DepartmentService,
    ReceiptService,
)

FIXED_NOW = datetime(2025, 1, 15, 9, 0, 0, tzinfo=UTC)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture pettycash logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, receipt_service):
            receipt_service.admin_approve(...)
            logs = captured_logs()
            assert any(r["message"] == "receipt_admin_approved" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("pettycash")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    url = os.environ.get("PETTYCASH_TEST_DATABASE_URL", "sqlite://")
    eng = build_engine(url)
    drop_tables(eng)
    create_tables(eng)
    register_immutability_listeners()
    yield eng
    unregister_immutability_listeners()
    drop_tables(eng)
    eng.dispose()


@pytest.fixture
def session(engine) -> Generator[Session, None, None]:
    sess = Session(bind=engine, expire_on_commit=False)
    yield sess
    sess.close()


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(FIXED_NOW)


# =============================================================================
# Services and selectors
# =============================================================================


@pytest.fixture
def activity_log(session, clock):
    return ActivityLogService(session, clock)


@pytest.fixture
def department_service(session, clock):
    return DepartmentService(session, clock)


@pytest.fixture
def receipt_service(session, clock, activity_log):
    return ReceiptService(session, clock, activity_log=activity_log)


@pytest.fixture
def batch_service(session, clock, activity_log):
    return BatchService(session, clock, activity_log=activity_log)


@pytest.fixture
def float_selector(session):
    return FloatSelector(session)


@pytest.fixture
def receipt_selector(session):
    return ReceiptSelector(session)


@pytest.fixture
def batch_selector(session):
    return BatchSelector(session)


@pytest.fixture
def activity_selector(session):
    return ActivitySelector(session)


@pytest.fixture
def department_selector(session):
    return DepartmentSelector(session)


@pytest.fixture
def analytics_selector(session, clock):
    return AnalyticsSelector(session, clock)


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def department(department_service):
    return department_service.get_or_create_department("Logistics")


@pytest.fixture
def staff(department_service, department):
    return department_service.get_or_create_staff("John Tan", department.id)


@pytest.fixture
def make_receipt(receipt_service, staff, department, clock):
    """Submit a receipt; keyword overrides go straight to create_receipt."""
    counter = {"n": 0}

    def _make(amount="45.00", gst="3.93", **overrides):
        counter["n"] += 1
        n = counter["n"]
        fields = dict(
            staff_id=staff.id,
            department_id=department.id,
            image_url=f"/files/receipts/{department.id}/r{n}.jpg",
            image_key=f"receipts/{department.id}/r{n}.jpg",
            category=ExpenseCategory.TRANSPORT_AND_VEHICLE,
            merchant_name=f"Merchant {n}",
            transaction_date=clock.today(),
            amount_total=Decimal(amount) if amount is not None else None,
            amount_gst=Decimal(gst) if gst is not None else None,
            ai_confidence=90,
            ai_reasoning="Clear receipt.",
        )
        fields.update(overrides)
        return receipt_service.create_receipt(**fields)

    return _make


@pytest.fixture
def make_approved_receipt(make_receipt, receipt_service):
    def _make(amount="45.00", gst="3.93", **overrides):
        receipt = make_receipt(amount, gst, **overrides)
        return receipt_service.admin_approve(receipt.id, actor_name="Aisha")

    return _make


# =============================================================================
# Intake fakes
# =============================================================================


class FakeObjectStore:
    """In-memory ObjectStore."""

    def __init__(self):
        self.objects: dict[str, tuple[bytes, str]] = {}

    def put(self, key: str, data: bytes, mime_type: str) -> str:
        self.objects[key] = (data, mime_type)
        return f"memory://{key}"


class FakeExtractor:
    """ReceiptExtractor returning a canned result and recording calls."""

    def __init__(self, result: ReceiptExtraction | None = None):
        self.result = result or default_extraction("not configured")
        self.calls: list[str] = []

    def extract(self, image_url: str) -> ReceiptExtraction:
        self.calls.append(image_url)
        return self.result


@pytest.fixture
def object_store():
    return FakeObjectStore()


@pytest.fixture
def extraction_result():
    return ReceiptExtraction(
        merchant_name="Shell Singapore",
        transaction_date=FIXED_NOW.date(),
        amount_total=Decimal("45.00"),
        amount_gst=Decimal("3.93"),
        category=ExpenseCategory.TRANSPORT_AND_VEHICLE,
        confidence=92,
        reasoning="Fuel receipt for a company vehicle.",
    )


@pytest.fixture
def extractor(extraction_result):
    return FakeExtractor(extraction_result)
