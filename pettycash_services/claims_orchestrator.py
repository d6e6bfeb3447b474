"""
pettycash_services.claims_orchestrator -- DI container and operation surface.

Responsibility:
    Creates every kernel service, selector and intake adapter exactly once,
    wires them together from a PettyCashConfig, and exposes the operations
    the four persona screens call.  Each operation binds the actor and the
    entity it touches into LogContext so every log line it produces carries
    them.

Architecture position:
    Services -- the top of the stack.  The only place where
    ``pettycash_config`` values are translated into kernel constructor
    arguments; the kernel never sees the config package.

Invariants enforced:
    - Single-instance lifecycle: one ActivityLogService, one ReceiptService
      and one BatchService per orchestrator, all sharing one Session and
      one Clock.
    - Write operations commit inside the kernel services; the orchestrator
      adds no transaction boundary of its own.

Usage:
    orchestrator = ClaimsOrchestrator(session, get_active_config())
    staff = orchestrator.get_or_create_staff("Ali", department.id)
    upload = orchestrator.upload_and_extract(image_bytes, "image/jpeg", department.id)
    receipt = orchestrator.create_receipt(staff_id=staff.id, ...)
"""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from pettycash_config import PettyCashConfig
from pettycash_ingestion.adapters.base import ObjectStore, ReceiptExtractor
from pettycash_ingestion.adapters.llm_extractor import LlmReceiptExtractor
from pettycash_ingestion.adapters.object_store import LocalObjectStore
from pettycash_ingestion.services.intake_service import IntakeService, UploadResult
from pettycash_kernel.domain.analytics import AnalyticsReport, NarrativeSummary, summarize
from pettycash_kernel.domain.clock import Clock, SystemClock
from pettycash_kernel.domain.dtos import (
    ActivityLogDTO,
    BatchDTO,
    DepartmentDTO,
    FloatBalance,
    ReceiptDTO,
    StaffDTO,
)
from pettycash_kernel.domain.values import ActorRole, EntityType, ReceiptStatus
from pettycash_kernel.logging_config import LogContext, get_logger
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

logger = get_logger("services.claims_orchestrator")


def build_extractor(
    config: PettyCashConfig,
    clock: Clock,
    environ: Mapping[str, str] | None = None,
) -> LlmReceiptExtractor:
    """The configured extraction client.  A disabled or keyless client
    always returns the default extraction."""
    env = os.environ if environ is None else environ
    settings = config.extraction
    api_key = env.get(settings.api_key_env) if settings.enabled else None
    return LlmReceiptExtractor(
        endpoint=settings.endpoint,
        model=settings.model,
        api_key=api_key,
        timeout_seconds=settings.timeout_seconds,
        image_detail=settings.image_detail,
        policy_text=settings.policy_text,
        clock=clock,
        max_age_days=config.receipt_max_age_days,
    )


class ClaimsOrchestrator:
    """Central factory and facade for the claims workflow.

    Contract:
        Receives a Session and a PettyCashConfig, plus optional Clock,
        extractor and object store (tests inject fakes).  All services
        share the same Session and Clock.
    """

    def __init__(
        self,
        session: Session,
        config: PettyCashConfig,
        clock: Clock | None = None,
        extractor: ReceiptExtractor | None = None,
        store: ObjectStore | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._session = session
        self._config = config
        self._clock = clock or SystemClock()

        # Write side, in dependency order.
        self.activity_log = ActivityLogService(session, self._clock)
        self.department_service = DepartmentService(
            session, self._clock, default_float_amount=config.default_float_amount,
        )
        self.receipt_service = ReceiptService(
            session,
            self._clock,
            activity_log=self.activity_log,
            receipt_max_age_days=config.receipt_max_age_days,
        )
        self.batch_service = BatchService(
            session, self._clock, activity_log=self.activity_log,
        )

        # Read side.
        self.departments = DepartmentSelector(session)
        self.floats = FloatSelector(session)
        self.receipts = ReceiptSelector(session)
        self.batches = BatchSelector(session)
        self.activity = ActivitySelector(session)
        analytics = config.analytics
        self.analytics = AnalyticsSelector(
            session,
            self._clock,
            window_days=analytics.window_days,
            high_value_threshold=analytics.high_value_threshold,
            low_confidence_threshold=analytics.low_confidence_threshold,
            top_merchant_count=analytics.top_merchant_count,
        )

        # Intake.
        self.intake = IntakeService(
            store or LocalObjectStore(config.storage.root_dir, config.storage.public_base_url),
            extractor or build_extractor(config, self._clock, environ),
        )

    # ------------------------------------------------------------------
    # Departments and staff
    # ------------------------------------------------------------------

    def list_departments(self) -> list[DepartmentDTO]:
        return self.departments.list_departments()

    def get_department(self, department_id: UUID) -> DepartmentDTO:
        return self.departments.get(department_id)

    def get_or_create_department(
        self, name: str, float_amount: Decimal | None = None,
    ) -> DepartmentDTO:
        return self.department_service.get_or_create_department(name, float_amount)

    def get_float(self, department_id: UUID) -> FloatBalance:
        with LogContext.bind(department_id=department_id):
            return self.floats.get_float(department_id)

    def get_or_create_staff(self, name: str, department_id: UUID) -> StaffDTO:
        with LogContext.bind(department_id=department_id):
            return self.department_service.get_or_create_staff(name, department_id)

    def list_staff(self, department_id: UUID) -> list[StaffDTO]:
        return self.departments.list_staff(department_id)

    # ------------------------------------------------------------------
    # Intake and receipts
    # ------------------------------------------------------------------

    def upload_and_extract(
        self, image: bytes | str, mime_type: str, department_id: UUID,
    ) -> UploadResult:
        # Fail fast on an unknown department before anything is stored.
        self.departments.get(department_id)
        return self.intake.upload_and_extract(image, mime_type, department_id)

    def create_receipt(self, **fields) -> ReceiptDTO:
        """Submit a claim; keyword arguments as ReceiptService.create_receipt."""
        with LogContext.bind(
            actor_role=ActorRole.STAFF.value,
            department_id=fields.get("department_id"),
        ):
            return self.receipt_service.create_receipt(**fields)

    def get_receipt(self, receipt_id: UUID) -> ReceiptDTO:
        return self.receipts.get(receipt_id)

    def list_receipts_by_department(
        self, department_id: UUID, status: ReceiptStatus | str | None = None,
    ) -> list[ReceiptDTO]:
        return self.receipts.list_by_department(department_id, status)

    def list_receipts_by_staff(self, staff_id: UUID) -> list[ReceiptDTO]:
        return self.receipts.list_by_staff(staff_id)

    def list_submitted(self, department_id: UUID) -> list[ReceiptDTO]:
        return self.receipts.list_submitted(department_id)

    def list_ready_for_batching(self, department_id: UUID) -> list[ReceiptDTO]:
        return self.receipts.list_ready_for_batching(department_id)

    def admin_approve(
        self,
        receipt_id: UUID,
        actor_name: str | None = None,
        actor_role: ActorRole | str = ActorRole.ADMIN,
    ) -> ReceiptDTO:
        with LogContext.bind(actor_role=actor_role, actor_name=actor_name, receipt_id=receipt_id):
            return self.receipt_service.admin_approve(receipt_id, actor_role, actor_name)

    def reject_receipt(
        self,
        receipt_id: UUID,
        reason: str,
        actor_role: ActorRole | str,
        actor_name: str | None = None,
    ) -> ReceiptDTO:
        with LogContext.bind(actor_role=actor_role, actor_name=actor_name, receipt_id=receipt_id):
            return self.receipt_service.reject(receipt_id, reason, actor_role, actor_name)

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    def create_batch(
        self,
        department_id: UUID,
        receipt_ids: Sequence[UUID],
        actor_name: str | None = None,
        actor_role: ActorRole | str = ActorRole.ADMIN,
    ) -> BatchDTO:
        with LogContext.bind(
            actor_role=actor_role, actor_name=actor_name, department_id=department_id,
        ):
            return self.batch_service.create_batch(
                department_id, receipt_ids, actor_role, actor_name,
            )

    def get_batch(self, batch_id: UUID) -> BatchDTO:
        return self.batches.get(batch_id)

    def list_batches_by_department(self, department_id: UUID) -> list[BatchDTO]:
        return self.batches.list_by_department(department_id)

    def list_pending_hod(self, department_id: UUID) -> list[BatchDTO]:
        return self.batches.list_pending_hod(department_id)

    def list_pending_finance(self) -> list[BatchDTO]:
        return self.batches.list_pending_finance()

    def hod_approve(
        self,
        batch_id: UUID,
        rejected_receipt_ids: Sequence[UUID] = (),
        rejection_reasons: Mapping[UUID | str, str] | None = None,
        actor_name: str | None = None,
        actor_role: ActorRole | str = ActorRole.HOD,
    ) -> BatchDTO:
        with LogContext.bind(actor_role=actor_role, actor_name=actor_name, batch_id=batch_id):
            return self.batch_service.hod_approve(
                batch_id, rejected_receipt_ids, rejection_reasons, actor_role, actor_name,
            )

    def finance_approve(
        self,
        batch_id: UUID,
        actor_name: str | None = None,
        actor_role: ActorRole | str = ActorRole.FINANCE,
    ) -> BatchDTO:
        with LogContext.bind(actor_role=actor_role, actor_name=actor_name, batch_id=batch_id):
            return self.batch_service.finance_approve(batch_id, actor_role, actor_name)

    def recalculate_batch_totals(self, batch_id: UUID) -> BatchDTO:
        with LogContext.bind(batch_id=batch_id):
            return self.batch_service.recalculate_totals(batch_id)

    # ------------------------------------------------------------------
    # Activity and analytics
    # ------------------------------------------------------------------

    def list_activity_by_department(
        self, department_id: UUID, limit: int = 50, offset: int = 0,
    ) -> list[ActivityLogDTO]:
        return self.activity.list_by_department(department_id, limit, offset)

    def list_activity_by_entity(
        self, entity_type: EntityType | str, entity_id: UUID,
    ) -> list[ActivityLogDTO]:
        return self.activity.list_by_entity(entity_type, entity_id)

    def get_analytics(self, department_id: UUID | None = None) -> AnalyticsReport:
        return self.analytics.get_analytics(department_id)

    def summarize_analytics(
        self, department_id: UUID | None = None,
    ) -> tuple[AnalyticsReport, NarrativeSummary]:
        report = self.get_analytics(department_id)
        return report, summarize(report)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def seed(self) -> list[DepartmentDTO]:
        """Ensure the configured departments exist."""
        departments = self.department_service.seed_departments(self._config.seed_departments)
        logger.info("seed_completed", extra={"department_count": len(departments)})
        return departments
