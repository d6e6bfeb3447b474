"""
ActivityLogService -- append-only audit trail writer.

Responsibility:
    Appends one ActivityLog row per logical state transition, inside the
    caller's transaction.

Architecture position:
    Kernel > Services -- called by DepartmentService, ReceiptService and
    BatchService.  Never commits.

Invariants enforced:
    - Append-only: ActivityLog rows are protected by ORM listeners.
    - Ordering: ``seq`` comes from SequenceService, never max+1.
    - Non-fatal: the write runs in a SAVEPOINT.  If it fails, only the
      savepoint is rolled back, the failure is logged at ERROR, and the
      caller's primary transition proceeds.

Failure modes:
    - Any SQLAlchemyError during the write is swallowed after logging;
      ``log()`` returns None in that case.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pettycash_kernel.domain.clock import Clock, SystemClock
from pettycash_kernel.domain.dtos import ActivityLogDTO
from pettycash_kernel.domain.values import ActivityAction, ActorRole, EntityType
from pettycash_kernel.logging_config import get_logger
from pettycash_kernel.models.activity_log import ActivityLog
from pettycash_kernel.services.sequence_service import SequenceService

logger = get_logger("services.activity_log")


def _json_safe(value: Any) -> Any:
    """Convert Decimal, UUID, dates and enums so the JSON column accepts them."""
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class ActivityLogService:
    """
    Writer for the activity log.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT read the log (see ActivitySelector).
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequence_service = SequenceService(session)

    def log(
        self,
        entity_type: EntityType | str,
        entity_id: UUID,
        department_id: UUID | None,
        action: ActivityAction | str,
        actor_role: ActorRole | str,
        description: str,
        actor_name: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ActivityLogDTO | None:
        """
        Append one entry.

        Returns the written entry, or None if the write failed (the failure
        is logged and the caller's transaction is left intact).
        """
        # Enum validation happens before the savepoint: a bad verb is a
        # programming error and should surface.
        entity_type = EntityType.parse(entity_type)
        action = ActivityAction.parse(action)
        actor_role = ActorRole.parse(actor_role)

        try:
            with self._session.begin_nested():
                entry = ActivityLog(
                    seq=self._sequence_service.next_value(SequenceService.ACTIVITY_LOG),
                    entity_type=entity_type,
                    entity_id=entity_id,
                    actor_role=actor_role,
                    actor_name=actor_name,
                    action=action,
                    description=description,
                    extra_data=_json_safe(metadata) if metadata else None,
                    department_id=department_id,
                    created_at=self._clock.now(),
                )
                self._session.add(entry)
                self._session.flush()
        except SQLAlchemyError:
            logger.error(
                "activity_log_write_failed",
                extra={
                    "entity_type": entity_type.value,
                    "entity_id": str(entity_id),
                    "action": action.value,
                },
                exc_info=True,
            )
            return None

        logger.debug(
            "activity_logged",
            extra={
                "seq": entry.seq,
                "entity_type": entity_type.value,
                "entity_id": str(entity_id),
                "action": action.value,
            },
        )
        return entry.to_dto()
