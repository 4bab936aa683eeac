from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update, func

from workdesk.models.user import User
from workdesk.repositories.base import BaseRepository


class UserRepository(BaseRepository):
    """Encapsulates every SQL query that touches the ``users`` table."""

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        """Return a single user by primary key, or ``None``."""
        result = await self._db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_team_members(self, team_id: UUID) -> List[User]:
        """Return every member of *team_id* ordered by name.

        Eligibility (role, active, absent) is decided by the caller so the
        same list serves both workload reporting and assignee selection.
        """
        result = await self._db.execute(
            select(User).where(User.team_id == team_id).order_by(User.name)
        )
        return list(result.scalars().all())

    async def count_team_members(self, team_id: UUID) -> int:
        """Count active members of a team (used for synthetic capacity)."""
        result = await self._db.execute(
            select(func.count(User.id)).where(
                User.team_id == team_id, User.is_active.is_(True)
            )
        )
        return result.scalar() or 0

    async def lock_for_update(self, user_id: UUID) -> Optional[User]:
        """Select the user row ``FOR UPDATE``.

        Serialises concurrent assignment commits targeting the same worker
        until the surrounding transaction ends.
        """
        result = await self._db.execute(
            select(User).where(User.id == user_id).with_for_update()
        )
        return result.scalar_one_or_none()

    async def update_wip_limit(self, user_id: UUID, wip_limit: int) -> None:
        await self._db.execute(
            update(User).where(User.id == user_id).values(wip_limit=wip_limit)
        )
