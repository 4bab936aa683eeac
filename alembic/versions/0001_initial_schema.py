"""initial schema: teams, users, requests, tasks, priority rubric, assignment config, audit log

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-05 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
    ]


def upgrade() -> None:
    op.create_table(
        "teams",
        _id_column(),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("wip_limit", sa.Integer()),
        *_timestamps(),
        sa.CheckConstraint("wip_limit IS NULL OR wip_limit > 0", name="ck_team_wip_limit_pos"),
    )

    op.create_table(
        "users",
        _id_column(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="USER"),
        sa.Column(
            "team_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("teams.id", ondelete="SET NULL"),
        ),
        sa.Column("wip_limit", sa.Integer()),
        sa.Column("performance_score", sa.Float(), nullable=False, server_default="0"),
        sa.Column("skill_category_ids", postgresql.ARRAY(postgresql.UUID(as_uuid=True))),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_absent", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.CheckConstraint("role IN ('ADMIN', 'LEADER', 'USER')", name="ck_user_role"),
        sa.CheckConstraint("wip_limit IS NULL OR wip_limit > 0", name="ck_user_wip_limit_pos"),
    )
    op.create_index("idx_users_team_role", "users", ["team_id", "role"])

    op.create_table(
        "categories",
        _id_column(),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
    )

    op.create_table(
        "requests",
        _id_column(),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column(
            "team_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("teams.id", ondelete="SET NULL"),
        ),
        sa.Column(
            "category_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("categories.id", ondelete="SET NULL"),
        ),
        sa.Column(
            "requester_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
        ),
        sa.Column("requester_type", sa.String(20), nullable=False, server_default="INTERNAL"),
        sa.Column("status", sa.String(20), nullable=False, server_default="OPEN"),
        sa.Column("priority", sa.String(20), nullable=False, server_default="MEDIUM"),
        sa.Column("urgency_score", sa.Integer()),
        sa.Column("impact_score", sa.Integer()),
        sa.Column("risk_score", sa.Integer()),
        sa.Column("custom_scores", postgresql.JSONB()),
        sa.Column("calculated_score", sa.Float()),
        sa.Column("priority_reason", sa.Text()),
        sa.Column("deadline", sa.DateTime(timezone=True)),
        *_timestamps(),
        sa.CheckConstraint(
            "priority IN ('LOW', 'MEDIUM', 'HIGH', 'URGENT')", name="ck_request_priority"
        ),
        sa.CheckConstraint(
            "requester_type IN ('INTERNAL', 'CUSTOMER')", name="ck_request_requester_type"
        ),
        sa.CheckConstraint(
            "status IN ('OPEN', 'IN_PROGRESS', 'DONE', 'CANCELLED', 'ARCHIVED')",
            name="ck_request_status",
        ),
    )
    op.create_index("idx_requests_team_status", "requests", ["team_id", "status"])

    op.create_table(
        "tasks",
        _id_column(),
        sa.Column(
            "request_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column(
            "assignee_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
        ),
        sa.Column("status", sa.String(20), nullable=False, server_default="TODO"),
        sa.Column("assigned_at", sa.DateTime(timezone=True)),
        sa.Column("started_at", sa.DateTime(timezone=True)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("sla_deadline", sa.DateTime(timezone=True)),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('TODO', 'IN_PROGRESS', 'IN_REVIEW', 'BLOCKED', 'DONE', 'CANCELLED')",
            name="ck_task_status",
        ),
    )
    op.create_index("idx_tasks_assignee_status", "tasks", ["assignee_id", "status"])
    op.create_index("idx_tasks_request", "tasks", ["request_id"])

    op.create_table(
        "priority_criteria",
        _id_column(),
        sa.Column("question", sa.Text(), nullable=False),
        sa.Column("field_key", sa.String(100)),
        sa.Column("weight", sa.Float(), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint("weight >= 0 AND weight <= 1000", name="ck_criterion_weight_range"),
    )

    op.create_table(
        "priority_thresholds",
        _id_column(),
        sa.Column("min_score", sa.Float(), nullable=False),
        sa.Column("max_score", sa.Float(), nullable=False),
        sa.Column("priority", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
        sa.CheckConstraint("min_score < max_score", name="ck_threshold_range"),
        sa.CheckConstraint(
            "priority IN ('LOW', 'MEDIUM', 'HIGH', 'URGENT')", name="ck_threshold_priority"
        ),
    )

    op.create_table(
        "assignment_configs",
        _id_column(),
        sa.Column("name", sa.String(50), nullable=False, unique=True, server_default="default"),
        sa.Column("weight_workload", sa.Float(), nullable=False),
        sa.Column("weight_skill", sa.Float(), nullable=False),
        sa.Column("weight_sla", sa.Float(), nullable=False),
        sa.Column("weight_random", sa.Float(), nullable=False),
        sa.Column("enable_auto_assign", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("advanced_settings", postgresql.JSONB(), nullable=False),
        sa.Column(
            "updated_by",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
        ),
        *_timestamps(),
    )

    op.create_table(
        "audit_logs",
        _id_column(),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("entity", sa.String(50), nullable=False),
        sa.Column("entity_id", postgresql.UUID(as_uuid=True)),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True)),
        sa.Column("old_value", postgresql.JSONB()),
        sa.Column("new_value", postgresql.JSONB()),
        sa.Column("reason", sa.Text()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.CheckConstraint(
            "action IN ('ASSIGNED', 'REASSIGNED', 'WIP_LIMIT_CHANGED', 'CONFIG_UPDATED')",
            name="ck_audit_action",
        ),
    )
    op.create_index("idx_audit_entity", "audit_logs", ["entity", "entity_id"])


def downgrade() -> None:
    op.drop_index("idx_audit_entity", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_table("assignment_configs")
    op.drop_table("priority_thresholds")
    op.drop_table("priority_criteria")
    op.drop_index("idx_tasks_request", table_name="tasks")
    op.drop_index("idx_tasks_assignee_status", table_name="tasks")
    op.drop_table("tasks")
    op.drop_index("idx_requests_team_status", table_name="requests")
    op.drop_table("requests")
    op.drop_table("categories")
    op.drop_index("idx_users_team_role", table_name="users")
    op.drop_table("users")
    op.drop_table("teams")
