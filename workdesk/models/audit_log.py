from sqlalchemy import Column, String, DateTime, Text, CheckConstraint, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.sql import func

from workdesk.models.base import Base


class AuditLog(Base):
    """Append-only record of an assignment or capacity decision.

    Rows are never updated or deleted by the application.
    """

    __tablename__ = "audit_logs"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    action = Column(String(50), nullable=False)
    entity = Column(String(50), nullable=False)
    entity_id = Column(UUID(as_uuid=True))
    actor_id = Column(UUID(as_uuid=True))
    old_value = Column(JSONB)
    new_value = Column(JSONB)
    reason = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "action IN ('ASSIGNED', 'REASSIGNED', 'WIP_LIMIT_CHANGED', 'CONFIG_UPDATED')",
            name="ck_audit_action",
        ),
        Index("idx_audit_entity", "entity", "entity_id"),
    )
