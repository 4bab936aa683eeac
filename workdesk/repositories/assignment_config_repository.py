from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import select

from workdesk.core.constants import ASSIGNMENT_CONFIG_NAME
from workdesk.models.assignment_config import AssignmentConfig
from workdesk.repositories.base import BaseRepository


class AssignmentConfigRepository(BaseRepository):
    """Encapsulates queries against the singleton ``assignment_configs`` row."""

    async def get_singleton(self) -> Optional[AssignmentConfig]:
        """Return the persisted config, or ``None`` when none was saved yet."""
        result = await self._db.execute(
            select(AssignmentConfig).where(AssignmentConfig.name == ASSIGNMENT_CONFIG_NAME)
        )
        return result.scalar_one_or_none()

    async def upsert(self, values: Dict[str, Any], updated_by: Optional[UUID]) -> AssignmentConfig:
        """Create the singleton row or update it in place."""
        config = await self.get_singleton()
        if config is None:
            config = AssignmentConfig(name=ASSIGNMENT_CONFIG_NAME)
            self._db.add(config)
        for key, value in values.items():
            setattr(config, key, value)
        config.updated_by = updated_by
        await self._db.flush()
        return config
