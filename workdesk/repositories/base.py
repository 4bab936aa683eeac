from sqlalchemy.ext.asyncio import AsyncSession


class BaseRepository:
    """Holds the ``AsyncSession`` shared by one unit of work.

    Repositories built from the same session see each other's pending
    writes, so an assignment, its audit entry and any row lock taken
    along the way all live in one transaction.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def commit(self) -> None:
        """Commit the current transaction (releases row locks)."""
        await self._db.commit()

    async def rollback(self) -> None:
        """Roll back the current transaction (releases row locks)."""
        await self._db.rollback()
