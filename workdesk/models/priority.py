from sqlalchemy import (
    Column,
    String,
    Integer,
    Float,
    Boolean,
    DateTime,
    CheckConstraint,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from workdesk.core.constants import PRIORITY_CHECK_CLAUSE
from workdesk.models.base import Base


class PriorityCriterion(Base):
    """One weighted question of the priority rubric.

    ``field_key`` tags which rating the criterion reads: ``URGENCY``,
    ``IMPACT``, ``RISK`` or ``CUSTOM:<name>``.  Rows created before the
    tag existed have it ``NULL`` and are matched on ``question`` text.
    """

    __tablename__ = "priority_criteria"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    question = Column(Text, nullable=False)
    field_key = Column(String(100))
    weight = Column(Float, nullable=False)
    order = Column(Integer, nullable=False, server_default="0")
    is_active = Column(Boolean, nullable=False, server_default="true")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("weight >= 0 AND weight <= 1000", name="ck_criterion_weight_range"),
    )


class PriorityThreshold(Base):
    """Half-open score bucket ``[min_score, max_score)`` mapped to a level."""

    __tablename__ = "priority_thresholds"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    min_score = Column(Float, nullable=False)
    max_score = Column(Float, nullable=False)
    priority = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("min_score < max_score", name="ck_threshold_range"),
        CheckConstraint(PRIORITY_CHECK_CLAUSE, name="ck_threshold_priority"),
    )
