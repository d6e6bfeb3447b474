"""Read access to the activity log.  Newest first, by sequence number."""

from uuid import UUID

from sqlalchemy import select

from pettycash_kernel.domain.dtos import ActivityLogDTO
from pettycash_kernel.domain.values import EntityType
from pettycash_kernel.exceptions import ValidationError
from pettycash_kernel.models.activity_log import ActivityLog
from pettycash_kernel.selectors.base import BaseSelector

DEFAULT_PAGE_SIZE = 50


class ActivitySelector(BaseSelector):

    def list_by_department(
        self,
        department_id: UUID,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> list[ActivityLogDTO]:
        if limit < 1 or offset < 0:
            raise ValidationError(f"Invalid page: limit={limit}, offset={offset}")

        def run():
            rows = self.session.execute(
                select(ActivityLog)
                .where(ActivityLog.department_id == department_id)
                .order_by(ActivityLog.seq.desc())
                .limit(limit)
                .offset(offset)
            ).scalars()
            return [e.to_dto() for e in rows]

        return self._degrading_list("list_activity_by_department", run)

    def list_by_entity(
        self,
        entity_type: EntityType | str,
        entity_id: UUID,
    ) -> list[ActivityLogDTO]:
        entity_type = EntityType.parse(entity_type)

        def run():
            rows = self.session.execute(
                select(ActivityLog)
                .where(
                    ActivityLog.entity_type == entity_type.value,
                    ActivityLog.entity_id == entity_id,
                )
                .order_by(ActivityLog.seq.desc())
            ).scalars()
            return [e.to_dto() for e in rows]

        return self._degrading_list("list_activity_by_entity", run)
