from sqlalchemy import (
    Column,
    String,
    Integer,
    Float,
    Boolean,
    DateTime,
    CheckConstraint,
    ForeignKey,
    ARRAY,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from workdesk.core.constants import ROLE_CHECK_CLAUSE
from workdesk.models.base import Base


class User(Base):
    """Worker (or leader/admin) who can hold assigned tasks.

    ``wip_limit`` caps the number of concurrently active tasks.  When
    ``NULL`` the team's limit applies.  ``skill_category_ids`` lists the
    request categories the worker is declared competent in and drives the
    skill component of assignee selection.  ``performance_score`` is a
    0–1 rating fed into the seniority boost.
    """

    __tablename__ = "users"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    name = Column(String(200), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    role = Column(String(20), nullable=False, server_default="USER")
    team_id = Column(UUID(as_uuid=True), ForeignKey("teams.id", ondelete="SET NULL"))
    wip_limit = Column(Integer)
    performance_score = Column(Float, nullable=False, server_default="0")
    skill_category_ids = Column(ARRAY(UUID(as_uuid=True)))
    is_active = Column(Boolean, nullable=False, server_default="true")
    is_absent = Column(Boolean, nullable=False, server_default="false")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    team = relationship("Team", back_populates="members")
    tasks_assigned = relationship("Task", back_populates="assignee")

    __table_args__ = (
        CheckConstraint(ROLE_CHECK_CLAUSE, name="ck_user_role"),
        CheckConstraint("wip_limit IS NULL OR wip_limit > 0", name="ck_user_wip_limit_pos"),
        Index("idx_users_team_role", "team_id", "role"),
    )
