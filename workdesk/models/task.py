from sqlalchemy import Column, String, DateTime, CheckConstraint, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from workdesk.core.constants import TASK_STATUS_CHECK_CLAUSE
from workdesk.models.base import Base


class Task(Base):
    """Unit of work carried out for a request by a single assignee.

    Tasks in a non-terminal status count toward the assignee's WIP.
    ``assigned_at`` records the latest (re)assignment and feeds the daily
    cap and cooldown guardrails.
    """

    __tablename__ = "tasks"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    request_id = Column(
        UUID(as_uuid=True), ForeignKey("requests.id", ondelete="CASCADE"), nullable=False
    )
    title = Column(String(255), nullable=False)
    assignee_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    status = Column(String(20), nullable=False, server_default="TODO")
    assigned_at = Column(DateTime(timezone=True))
    started_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))
    sla_deadline = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    request = relationship("Request", back_populates="tasks")
    assignee = relationship("User", back_populates="tasks_assigned")

    __table_args__ = (
        CheckConstraint(TASK_STATUS_CHECK_CLAUSE, name="ck_task_status"),
        Index("idx_tasks_assignee_status", "assignee_id", "status"),
        Index("idx_tasks_request", "request_id"),
    )
