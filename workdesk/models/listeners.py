from datetime import datetime, timezone

from sqlalchemy import event

from workdesk.models.assignment_config import AssignmentConfig
from workdesk.models.priority import PriorityCriterion
from workdesk.models.request import Request
from workdesk.models.task import Task
from workdesk.models.team import Team
from workdesk.models.user import User


# Auto updated_at
@event.listens_for(Request, "before_update")
@event.listens_for(Task, "before_update")
@event.listens_for(User, "before_update")
@event.listens_for(Team, "before_update")
@event.listens_for(PriorityCriterion, "before_update")
@event.listens_for(AssignmentConfig, "before_update")
def update_timestamp(mapper, connection, target):
    target.updated_at = datetime.now(timezone.utc)
