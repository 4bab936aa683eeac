from typing import Optional
from uuid import UUID

from sqlalchemy import select, update

from workdesk.models.request import Request
from workdesk.repositories.base import BaseRepository


class RequestRepository(BaseRepository):
    """Encapsulates queries against the ``requests`` table."""

    async def get_by_id(self, request_id: UUID) -> Optional[Request]:
        """Return a single request by primary key, or ``None``."""
        result = await self._db.execute(select(Request).where(Request.id == request_id))
        return result.scalar_one_or_none()

    async def update_priority(
        self,
        request_id: UUID,
        priority: str,
        calculated_score: Optional[float],
        priority_reason: Optional[str],
    ) -> None:
        """Persist a calculated priority together with its score and reason."""
        await self._db.execute(
            update(Request)
            .where(Request.id == request_id)
            .values(
                priority=priority,
                calculated_score=calculated_score,
                priority_reason=priority_reason,
            )
        )

    async def set_priority(self, request_id: UUID, priority: str) -> None:
        """Persist a manually entered priority level."""
        await self._db.execute(
            update(Request).where(Request.id == request_id).values(priority=priority)
        )
