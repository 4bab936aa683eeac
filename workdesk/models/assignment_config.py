from sqlalchemy import Column, String, Float, Boolean, DateTime, ForeignKey
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.sql import func

from workdesk.models.base import Base


class AssignmentConfig(Base):
    """Singleton admin configuration for the assignee selector.

    At most one row exists (``name = 'default'``).  The four weights must
    sum to exactly 1.0; this is enforced by the service layer before any
    write.  ``advanced_settings`` stores the matching, guardrail,
    notification, automation and score-modifier blocks as JSONB.
    """

    __tablename__ = "assignment_configs"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    name = Column(String(50), nullable=False, unique=True, server_default="default")
    weight_workload = Column(Float, nullable=False)
    weight_skill = Column(Float, nullable=False)
    weight_sla = Column(Float, nullable=False)
    weight_random = Column(Float, nullable=False)
    enable_auto_assign = Column(Boolean, nullable=False, server_default="true")
    advanced_settings = Column(JSONB, nullable=False)
    updated_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
