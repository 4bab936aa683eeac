"""Audit repository – append-only writes to ``audit_logs``."""

from typing import Any, Dict, Optional
from uuid import UUID

from workdesk.models.audit_log import AuditLog
from workdesk.repositories.base import BaseRepository


class AuditRepository(BaseRepository):
    """Appends audit entries.  Rows are never updated or deleted."""

    async def append(
        self,
        action: str,
        entity: str,
        entity_id: Optional[UUID],
        actor_id: Optional[UUID],
        old_value: Optional[Dict[str, Any]] = None,
        new_value: Optional[Dict[str, Any]] = None,
        reason: Optional[str] = None,
    ) -> AuditLog:
        entry = AuditLog(
            action=action,
            entity=entity,
            entity_id=entity_id,
            actor_id=actor_id,
            old_value=old_value,
            new_value=new_value,
            reason=reason,
        )
        self._db.add(entry)
        return entry
