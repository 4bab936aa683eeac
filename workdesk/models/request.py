from sqlalchemy import (
    Column,
    String,
    Integer,
    Float,
    DateTime,
    CheckConstraint,
    ForeignKey,
    Index,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from workdesk.core.constants import PRIORITY_CHECK_CLAUSE, REQUEST_STATUS_CHECK_CLAUSE
from workdesk.models.base import Base


class Request(Base):
    """Incoming work request routed to a team.

    Holds the optional 1–5 ratings used by the priority scoring engine.
    ``priority`` is either entered manually or written back from a score
    calculation together with ``calculated_score`` and ``priority_reason``.
    """

    __tablename__ = "requests"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    title = Column(String(255), nullable=False)
    description = Column(Text)
    team_id = Column(UUID(as_uuid=True), ForeignKey("teams.id", ondelete="SET NULL"))
    category_id = Column(UUID(as_uuid=True), ForeignKey("categories.id", ondelete="SET NULL"))
    requester_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    requester_type = Column(String(20), nullable=False, server_default="INTERNAL")
    status = Column(String(20), nullable=False, server_default="OPEN")
    priority = Column(String(20), nullable=False, server_default="MEDIUM")
    urgency_score = Column(Integer)
    impact_score = Column(Integer)
    risk_score = Column(Integer)
    custom_scores = Column(JSONB)
    calculated_score = Column(Float)
    priority_reason = Column(Text)
    deadline = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    team = relationship("Team", back_populates="requests")
    category = relationship("Category")
    tasks = relationship("Task", back_populates="request", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint(PRIORITY_CHECK_CLAUSE, name="ck_request_priority"),
        CheckConstraint(
            "requester_type IN ('INTERNAL', 'CUSTOMER')", name="ck_request_requester_type"
        ),
        CheckConstraint(REQUEST_STATUS_CHECK_CLAUSE, name="ck_request_status"),
        Index("idx_requests_team_status", "team_id", "status"),
    )
