from typing import Optional
from uuid import UUID

from sqlalchemy import select

from workdesk.models.team import Team
from workdesk.repositories.base import BaseRepository


class TeamRepository(BaseRepository):
    """Encapsulates queries against the ``teams`` table."""

    async def get_by_id(self, team_id: UUID) -> Optional[Team]:
        result = await self._db.execute(select(Team).where(Team.id == team_id))
        return result.scalar_one_or_none()
