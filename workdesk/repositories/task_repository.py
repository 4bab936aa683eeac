from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select, update, func
from sqlalchemy.orm import selectinload

from workdesk.core.constants import ACTIVE_TASK_STATUSES
from workdesk.models.request import Request
from workdesk.models.task import Task
from workdesk.repositories.base import BaseRepository
from workdesk.schemas.common import TaskStatus


class TaskRepository(BaseRepository):
    """Encapsulates queries against the ``tasks`` table.

    Active-task counts are always read fresh from the database; nothing in
    this repository is cached.
    """

    async def get_by_id(self, task_id: UUID) -> Optional[Task]:
        """Return a task with its request eagerly loaded, or ``None``."""
        result = await self._db.execute(
            select(Task).where(Task.id == task_id).options(selectinload(Task.request))
        )
        return result.scalar_one_or_none()

    async def get_unassigned_for_request(self, request_id: UUID) -> Optional[Task]:
        """Return the oldest open task of a request that has no assignee."""
        result = await self._db.execute(
            select(Task)
            .where(
                Task.request_id == request_id,
                Task.assignee_id.is_(None),
                Task.status.in_(ACTIVE_TASK_STATUSES),
            )
            .order_by(Task.created_at.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def create(self, **kwargs: Any) -> Task:
        """Insert a new task."""
        task = Task(**kwargs)
        self._db.add(task)
        await self._db.flush()
        return task

    async def set_assignee(self, task_id: UUID, assignee_id: UUID, assigned_at: datetime) -> None:
        await self._db.execute(
            update(Task)
            .where(Task.id == task_id)
            .values(assignee_id=assignee_id, assigned_at=assigned_at)
        )

    async def count_active_for_assignee(self, assignee_id: UUID) -> int:
        """Count non-terminal tasks currently held by *assignee_id*."""
        result = await self._db.execute(
            select(func.count(Task.id)).where(
                Task.assignee_id == assignee_id,
                Task.status.in_(ACTIVE_TASK_STATUSES),
            )
        )
        return result.scalar() or 0

    async def count_active_by_assignees(self, assignee_ids: Sequence[UUID]) -> Dict[UUID, int]:
        """Return ``{assignee_id: active_count}``; missing ids hold nothing."""
        if not assignee_ids:
            return {}
        rows = await self._db.execute(
            select(Task.assignee_id, func.count(Task.id))
            .where(
                Task.assignee_id.in_(assignee_ids),
                Task.status.in_(ACTIVE_TASK_STATUSES),
            )
            .group_by(Task.assignee_id)
        )
        return {assignee_id: count for assignee_id, count in rows}

    async def get_completed_since(
        self, assignee_ids: Sequence[UUID], since: datetime
    ) -> List[Any]:
        """Return finished-task rows used for lead time and SLA compliance.

        Each row exposes ``assignee_id``, ``created_at``, ``started_at``,
        ``completed_at`` and ``sla_deadline``.
        """
        if not assignee_ids:
            return []
        rows = await self._db.execute(
            select(
                Task.assignee_id,
                Task.created_at,
                Task.started_at,
                Task.completed_at,
                Task.sla_deadline,
            ).where(
                Task.assignee_id.in_(assignee_ids),
                Task.status == TaskStatus.DONE.value,
                Task.completed_at >= since,
            )
        )
        return list(rows)

    async def count_assigned_since(
        self, assignee_ids: Sequence[UUID], since: datetime
    ) -> Dict[UUID, int]:
        """Count assignments handed to each worker since *since*."""
        if not assignee_ids:
            return {}
        rows = await self._db.execute(
            select(Task.assignee_id, func.count(Task.id))
            .where(Task.assignee_id.in_(assignee_ids), Task.assigned_at >= since)
            .group_by(Task.assignee_id)
        )
        return {assignee_id: count for assignee_id, count in rows}

    async def last_assigned_at_by_assignees(
        self, assignee_ids: Sequence[UUID]
    ) -> Dict[UUID, datetime]:
        if not assignee_ids:
            return {}
        rows = await self._db.execute(
            select(Task.assignee_id, func.max(Task.assigned_at))
            .where(Task.assignee_id.in_(assignee_ids), Task.assigned_at.is_not(None))
            .group_by(Task.assignee_id)
        )
        return {assignee_id: last for assignee_id, last in rows}

    async def count_completed_in_category(
        self, assignee_ids: Sequence[UUID], category_id: UUID
    ) -> Dict[UUID, int]:
        """Count finished tasks per worker on requests of *category_id*."""
        if not assignee_ids:
            return {}
        rows = await self._db.execute(
            select(Task.assignee_id, func.count(Task.id))
            .join(Request, Task.request_id == Request.id)
            .where(
                Task.assignee_id.in_(assignee_ids),
                Task.status == TaskStatus.DONE.value,
                Request.category_id == category_id,
            )
            .group_by(Task.assignee_id)
        )
        return {assignee_id: count for assignee_id, count in rows}

    async def get_todo_tasks_for_assignees(self, assignee_ids: Sequence[UUID]) -> List[Task]:
        """Return TODO tasks of the given workers with their requests loaded."""
        if not assignee_ids:
            return []
        result = await self._db.execute(
            select(Task)
            .where(
                Task.assignee_id.in_(assignee_ids),
                Task.status == TaskStatus.TODO.value,
            )
            .options(selectinload(Task.request))
        )
        return list(result.scalars().all())

    async def find_stalled(self, assigned_before: datetime, limit: int = 100) -> List[Task]:
        """Return assigned TODO tasks never started since before *assigned_before*."""
        result = await self._db.execute(
            select(Task)
            .where(
                Task.status == TaskStatus.TODO.value,
                Task.assignee_id.is_not(None),
                Task.started_at.is_(None),
                Task.assigned_at < assigned_before,
            )
            .options(selectinload(Task.request))
            .order_by(Task.assigned_at.asc())
            .limit(limit)
        )
        return list(result.scalars().all())
