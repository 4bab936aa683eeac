from sqlalchemy import Column, String, Integer, DateTime, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from workdesk.models.base import Base


class Team(Base):
    """Group of workers that requests are routed to.

    ``wip_limit`` is the fallback per-member capacity used for members
    without an individual limit.  ``NULL`` means "not configured", in which
    case a synthetic capacity derived from the member count applies.
    """

    __tablename__ = "teams"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    name = Column(String(200), nullable=False, unique=True)
    wip_limit = Column(Integer)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    members = relationship("User", back_populates="team")
    requests = relationship("Request", back_populates="team")

    __table_args__ = (
        CheckConstraint("wip_limit IS NULL OR wip_limit > 0", name="ck_team_wip_limit_pos"),
    )
