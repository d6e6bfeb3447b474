"""
ActivityLog ORM model -- the append-only audit trail.

Invariants enforced
-------------------
* Rows are never updated or deleted.  ORM listeners in
  ``pettycash_kernel.db.immutability`` raise ImmutabilityViolationError.
* ``seq`` is allocated from the ``activity_log`` sequence and gives a strict
  newest-first order even when two entries share a timestamp.
* entity_type, actor_role and action are closed enumerations.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, validates

from pettycash_kernel.db.base import Base
from pettycash_kernel.domain.values import ActivityAction, ActorRole, EntityType


class ActivityLog(Base):
    """One audit entry per logical state transition."""

    __tablename__ = "activity_logs"

    __table_args__ = (
        UniqueConstraint("seq", name="uq_activity_log_seq"),
        Index("idx_activity_department_seq", "department_id", "seq"),
        Index("idx_activity_entity", "entity_type", "entity_id"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False)
    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)
    # Not a foreign key: may point at a receipt, batch or department.
    entity_id: Mapped[UUID] = mapped_column(nullable=False)
    actor_role: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    # "metadata" is reserved on declarative classes.
    extra_data: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSON, nullable=True
    )
    department_id: Mapped[UUID | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    @validates("entity_type")
    def _validate_entity_type(self, key, value):
        return EntityType.parse(value).value

    @validates("actor_role")
    def _validate_actor_role(self, key, value):
        return ActorRole.parse(value).value

    @validates("action")
    def _validate_action(self, key, value):
        return ActivityAction.parse(value).value

    def to_dto(self):
        from pettycash_kernel.domain.dtos import ActivityLogDTO

        return ActivityLogDTO(
            id=self.id,
            seq=self.seq,
            entity_type=EntityType(self.entity_type),
            entity_id=self.entity_id,
            actor_role=ActorRole(self.actor_role),
            actor_name=self.actor_name,
            action=ActivityAction(self.action),
            description=self.description,
            metadata=self.extra_data,
            department_id=self.department_id,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return f"<ActivityLog #{self.seq} {self.entity_type}:{self.action}>"
